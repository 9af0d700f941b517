DEFAULT_MODEL = "google/gemini-2.5-flash"
IMAGE_MODEL = "google/gemini-2.5-flash-image-preview"
TITLE_MODEL = "google/gemini-2.5-flash"

CLAUDE_SYSTEM_PROMPT = (
    "You are Nova AI, a helpful and intelligent assistant. Provide clear, concise, "
    "and helpful responses. When writing code, always use proper markdown code blocks "
    "with language specifications."
)

CHAT_SYSTEM_PROMPT = (
    "You are Nova AI, a highly intelligent and helpful assistant. You have access to the "
    "full conversation history and should reference previous messages when relevant. "
    "Provide clear, accurate, and contextual responses. When writing code, always use "
    "proper markdown code blocks with language specifications. Be concise but thorough."
)

IMAGE_SYSTEM_PROMPT = "You are Nova AI. Generate images based on user descriptions."

IMAGE_FALLBACK_RESPONSE = "Image generated successfully"


def title_prompt(first_message: str) -> str:
    return (
        "Generate a short, concise title (max 4-5 words) for a chat that starts with: "
        f"\"{first_message[:100]}\". Return ONLY the title, no quotes or extra text."
    )


TRANSCRIPTION_PROMPT = (
    "Transcribe the speech in this audio verbatim. Return only the transcript text "
    "without timestamps, speaker labels or commentary."
)

"""Models offered in the model picker and the starter prompts shown for new chats."""

MODELS = [
    {
        "id": "google/gemini-2.5-flash-lite",
        "name": "Gemini Flash Lite",
        "provider": "gateway",
        "tagline": "Fastest",
        "description": "Lightweight model tuned for the quickest replies",
        "bestFor": "Quick responses, general tasks, everyday use",
    },
    {
        "id": "google/gemini-2.5-flash",
        "name": "Gemini 2.5 Flash",
        "provider": "gateway",
        "tagline": "Balanced",
        "description": "Balanced and fast model, perfect for most conversations",
        "bestFor": "Daily conversations, coding help, general questions",
        "default": True,
    },
    {
        "id": "google/gemini-2.5-pro",
        "name": "Gemini 2.5 Pro",
        "provider": "gateway",
        "tagline": "Most capable",
        "description": "Most powerful model with advanced reasoning",
        "bestFor": "Complex problems, in-depth analysis, advanced coding",
    },
    {
        "id": "openai/gpt-5-mini",
        "name": "GPT-5 Mini",
        "provider": "gateway",
        "tagline": "Fast",
        "description": "Faster GPT variant with great performance",
        "bestFor": "Everyday tasks that still need strong reasoning",
    },
    {
        "id": "openai/gpt-5",
        "name": "GPT-5",
        "provider": "gateway",
        "tagline": "Premium",
        "description": "OpenAI's flagship model with exceptional performance",
        "bestFor": "Creative writing, complex coding, detailed analysis",
    },
    {
        "id": "claude-sonnet-4-5",
        "name": "Claude Sonnet",
        "provider": "anthropic",
        "tagline": "Thoughtful",
        "description": "Anthropic model served through its native API",
        "bestFor": "Long-form writing, careful reasoning, code review",
    },
]

QUICK_PROMPTS = [
    {"label": "Brainstorm ideas", "prompt": "Help me brainstorm creative ideas for"},
    {"label": "Write code", "prompt": "Write clean, efficient code to"},
    {"label": "Summarize", "prompt": "Provide a clear summary of"},
    {"label": "Explain concept", "prompt": "Explain this concept in simple terms:"},
]

import io

from conftest import FakeResponse, auth_headers, gateway_reply
from nova_backend.ai import gemini


def _seed_chat(db, uid="alice", messages=()):
    chats = db.collection("chats")
    chat_ref = chats.document("chat1")
    chat_ref.set({"uid": uid, "title": "Seeded", "pinned": False})
    for index, (role, content) in enumerate(messages):
        chat_ref.collection("messages").document(f"m{index:03d}").set(
            {"uid": uid, "role": role, "content": content, "createdAt": index}
        )
    return chat_ref


def test_chat_requires_message(client):
    rv = client.post("/chat", json={}, headers=auth_headers())
    assert rv.status_code == 400
    assert rv.get_json()["message"] == "Message is required"


def test_chat_without_chat_id_sends_only_system_and_message(client, post):
    post.responses.append(gateway_reply("Hi!"))

    rv = client.post("/chat", json={"message": "Hello"}, headers=auth_headers())

    assert rv.status_code == 200
    assert rv.get_json() == {"response": "Hi!"}
    body = post.calls[0]["json"]
    assert body["model"] == "google/gemini-2.5-flash"
    assert [m["role"] for m in body["messages"]] == ["system", "user"]


def test_chat_loads_last_twenty_messages(client, db, post):
    seeded = [("user" if i % 2 == 0 else "assistant", f"msg {i}\n\n_Response time: 1s_") for i in range(25)]
    _seed_chat(db, messages=seeded)
    post.responses.append(gateway_reply("ok"))

    rv = client.post("/chat", json={"message": "Next", "chatId": "chat1"}, headers=auth_headers())

    assert rv.status_code == 200
    messages = post.calls[0]["json"]["messages"]
    history = messages[1:-1]
    assert len(history) == 20
    assert history[0]["content"] == "msg 5"
    assert history[-1]["content"] == "msg 24"
    assert messages[-1] == {"role": "user", "content": "Next"}


def test_chat_rejects_foreign_chat_id(client, db):
    _seed_chat(db, uid="bob")
    rv = client.post("/chat", json={"message": "Hi", "chatId": "chat1"}, headers=auth_headers())
    assert rv.status_code == 403


def test_chat_maps_payment_required(client, post):
    post.responses.append(FakeResponse(402, text="no credits"))
    rv = client.post("/chat", json={"message": "Hi"}, headers=auth_headers())
    assert rv.status_code == 402
    assert rv.get_json() == {
        "error": "payment_required",
        "message": "Payment required. Please add credits to continue.",
    }


def test_chat_maps_generic_upstream_failure_to_bad_gateway(client, post):
    post.responses.append(FakeResponse(503, text="down"))
    rv = client.post("/chat", json={"message": "Hi"}, headers=auth_headers())
    assert rv.status_code == 502
    assert rv.get_json()["message"] == "AI gateway error: 503"


def test_chat_reports_missing_provider_key(app, client):
    app.config["ANTHROPIC_API_KEY"] = None
    rv = client.post("/chat", json={"message": "Hi", "model": "claude-3-haiku"}, headers=auth_headers())
    assert rv.status_code == 503
    assert rv.get_json()["error"] == "not_configured"


def test_transcription_returns_text(client, monkeypatch):
    captured = {}

    def fake_transcribe(data, mime_type, api_key, *, language=None):
        captured.update(data=data, mime_type=mime_type, api_key=api_key, language=language)
        return "turn on the lights"

    monkeypatch.setattr(gemini, "transcribe_audio", fake_transcribe)

    rv = client.post(
        "/transcriptions",
        data={"file": (io.BytesIO(b"OggS-audio"), "clip.ogg", "audio/ogg"), "language": "en-US"},
        headers=auth_headers(),
        content_type="multipart/form-data",
    )

    assert rv.status_code == 200
    assert rv.get_json() == {"text": "turn on the lights"}
    assert captured == {
        "data": b"OggS-audio",
        "mime_type": "audio/ogg",
        "api_key": "gemini-key",
        "language": "en-US",
    }


def test_transcription_validates_upload(client):
    rv = client.post("/transcriptions", data={}, headers=auth_headers(), content_type="multipart/form-data")
    assert rv.status_code == 400

    rv = client.post(
        "/transcriptions",
        data={"file": (io.BytesIO(b"hello"), "notes.txt", "text/plain")},
        headers=auth_headers(),
        content_type="multipart/form-data",
    )
    assert rv.status_code == 400


def test_chat_history_reads_only_the_recent_window(client, db, post):
    _seed_chat(db, messages=[("user", f"msg {i}") for i in range(300)])
    post.responses.append(gateway_reply("ok"))
    db.reads = 0

    rv = client.post("/chat", json={"message": "Next", "chatId": "chat1"}, headers=auth_headers())

    assert rv.status_code == 200
    assert db.reads == 20
    history = post.calls[0]["json"]["messages"][1:-1]
    assert [m["content"] for m in history] == [f"msg {i}" for i in range(280, 300)]

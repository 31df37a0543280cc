import httpx

from chat_printer.notify import NtfyNotifier


def test_posts_message_with_headers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = request.content.decode()
        seen["headers"] = request.headers
        return httpx.Response(200)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    notifier = NtfyNotifier("https://ntfy.example/printer", client=client)
    assert notifier.send("printer gone", priority="high") is True
    assert seen["url"] == "https://ntfy.example/printer"
    assert seen["body"] == "printer gone"
    assert seen["headers"]["Title"] == "Chat Printer"
    assert seen["headers"]["Priority"] == "high"
    assert seen["headers"]["Tags"] == "printer,warning"


def test_unknown_priority_falls_back_to_default():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["priority"] = request.headers["Priority"]
        return httpx.Response(200)

    notifier = NtfyNotifier("https://ntfy.example/t", client=httpx.Client(transport=httpx.MockTransport(handler)))
    notifier.send("hello", priority="extreme")
    assert seen["priority"] == "default"


def test_empty_url_is_skipped():
    calls = []
    client = httpx.Client(transport=httpx.MockTransport(lambda r: calls.append(r) or httpx.Response(200)))
    assert NtfyNotifier("", client=client).send("hello") is False
    assert calls == []


def test_delivery_failure_is_not_raised():
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    assert NtfyNotifier("https://ntfy.example/t", client=client).send("hello") is False

from core.eventbus import subscribe, emit


def test_eventbus_handler_isolation():
    calls = []

    def bad(_):
        calls.append("bad")
        raise RuntimeError("boom")

    def good(_):
        calls.append("good")

    subscribe("IsoEvent", bad)
    subscribe("IsoEvent", good)
    emit("IsoEvent", {})
    assert calls == ["bad", "good"]


def test_handler_gets_private_payload_copy(bus):
    seen = []

    def mutate(p):
        p["value"] = "changed"

    bus.subscribe("Copy", mutate)
    bus.subscribe("Copy", lambda p: seen.append(p["value"]))
    bus.emit("Copy", {"value": "original"})
    assert seen == ["original"]

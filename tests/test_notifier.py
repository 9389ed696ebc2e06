from alarms import notifier as notifier_module
from alarms.notifier import Banner, Notifier


class _Unsupported:
    def __init__(self):
        self.calls = 0

    def notify(self, **kwargs):
        self.calls += 1
        raise NotImplementedError()

    def pattern(self, **kwargs):
        self.calls += 1
        raise NotImplementedError()

    def cancel(self):
        self.calls += 1
        raise NotImplementedError()


class _Recorder:
    def __init__(self):
        self.calls = []

    def notify(self, **kwargs):
        self.calls.append(("notify", kwargs))

    def pattern(self, **kwargs):
        self.calls.append(("pattern", kwargs))

    def cancel(self):
        self.calls.append(("cancel", {}))


def test_notifier_forwards_to_plyer(monkeypatch):
    recorder = _Recorder()
    monkeypatch.setattr(notifier_module, "notification", recorder)
    monkeypatch.setattr(notifier_module, "vibrator", recorder)
    notifier = Notifier()

    notifier.notify("Wake up", "Alarm 08:00")
    notifier.vibrate([0, 1, 0.5], repeat=True)
    notifier.vibrate([0, 0.2])
    notifier.cancel_vibration()

    assert recorder.calls[0] == ("notify", {"title": "Wake up", "message": "Alarm 08:00", "app_name": "Zora", "timeout": 10})
    assert recorder.calls[1] == ("pattern", {"pattern": (0, 1, 0.5), "repeat": 0})
    assert recorder.calls[2] == ("pattern", {"pattern": (0, 0.2), "repeat": -1})
    assert recorder.calls[3] == ("cancel", {})


def test_unsupported_capabilities_are_disabled_quietly(monkeypatch):
    unsupported = _Unsupported()
    monkeypatch.setattr(notifier_module, "notification", unsupported)
    monkeypatch.setattr(notifier_module, "vibrator", unsupported)
    notifier = Notifier()

    notifier.notify("a", "b")
    notifier.notify("a", "b")
    notifier.vibrate([0, 1])
    notifier.vibrate([0, 1])
    notifier.cancel_vibration()

    assert unsupported.calls == 2


def test_banner_shows_and_clears():
    banner = Banner()

    banner.show("08:00 Standup", 60)
    assert banner.text == "08:00 Standup"

    banner.clear()
    assert banner.text is None

from campusnest.notifications import BrowserNavigator, LoggingNotifier, property_route


def test_logging_notifier_uses_levels(caplog):
    with caplog.at_level("INFO"):
        LoggingNotifier().success("all good")
        LoggingNotifier().error("went wrong")

    levels = {record.getMessage(): record.levelname for record in caplog.records}
    assert levels["all good"] == "INFO"
    assert levels["went wrong"] == "ERROR"


def test_property_route():
    assert property_route("p1") == "/property/p1"


def test_browser_navigator_opens_provider_page(monkeypatch, caplog):
    opened = []
    monkeypatch.setattr(
        "campusnest.notifications.webbrowser.open",
        lambda url: opened.append(url) or False,
    )
    navigator = BrowserNavigator(client_url="http://localhost:3000")

    with caplog.at_level("INFO"):
        navigator.redirect("https://checkout.example.com/abc")
        navigator.navigate("/unlocked-properties")

    assert opened == ["https://checkout.example.com/abc"]
    assert "Could not open a browser" in caplog.text
    assert "http://localhost:3000/unlocked-properties" in caplog.text
    assert navigator.routes == ["/unlocked-properties"]

"""Shared fixtures: a controllable clock and a small rule catalog."""

import pytest


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog_data():
    return {
        "antibot": {
            "cloudflare": {
                "name": "Cloudflare",
                "color": "#f38020",
                "priority": 90,
                "detection": {
                    "cookies": [{"name": "cf_clearance", "confidence": 90}],
                    "headers": [{"name": "cf-ray", "confidence": 85}],
                    "urls": [{"pattern": "/cdn-cgi/challenge-platform/", "confidence": 80}],
                },
            },
            "akamai": {
                "name": "Akamai Bot Manager",
                "detection": {
                    "cookies": [{"name": "_abck", "confidence": 95}],
                },
            },
        },
        "captcha": {
            "recaptcha": {
                "name": "reCAPTCHA",
                "priority": 60,
                "detection": {
                    "dom": [{"selector": "iframe[src*='recaptcha']", "confidence": 90}],
                    "content": [{"content": "grecaptcha", "confidence": 80, "checkScripts": True}],
                    "urls": [{"pattern": "recaptcha/api.js", "confidence": 95}],
                },
            },
        },
    }

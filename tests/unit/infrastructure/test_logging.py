import time

from notifyhub_dispatch.infrastructure.logging import (
    Stopwatch,
    current_pass_id,
    dispatch_pass,
    redact_secret,
)


class TestDispatchPass:
    def test_pass_id_is_visible_inside_block(self):
        with dispatch_pass("abc123") as pass_id:
            assert pass_id == "abc123"
            assert current_pass_id() == "abc123"

    def test_pass_id_is_cleared_after_block(self):
        with dispatch_pass("abc123"):
            pass

        assert current_pass_id() == ""

    def test_nested_pass_restores_outer_id(self):
        with dispatch_pass("outer"):
            with dispatch_pass("inner"):
                assert current_pass_id() == "inner"
            assert current_pass_id() == "outer"


class TestStopwatch:
    def test_measures_elapsed_time(self):
        stopwatch = Stopwatch()
        time.sleep(0.01)

        assert stopwatch.elapsed_ms >= 10


class TestRedactSecret:
    def test_masks_long_secret(self):
        text = "POST https://api.telegram.org/bot123456789:SECRET/sendMessage failed"

        assert redact_secret(text, "123456789:SECRET") == (
            "POST https://api.telegram.org/bot12345678.../sendMessage failed"
        )

    def test_masks_short_secret_entirely(self):
        assert redact_secret("token=short", "short") == "token=***"

    def test_missing_secret_leaves_text_unchanged(self):
        assert redact_secret("nothing to hide", None) == "nothing to hide"
        assert redact_secret("", "secret") == ""

import logging

from ztp.core.logging import ContextFilter, _drop_private_keys, _otel_enricher


def test_drop_private_keys() -> None:
    event = {"event": "template_created", "_record": object(), "template_id": "demo"}

    assert _drop_private_keys(None, "info", event) == {
        "event": "template_created",
        "template_id": "demo",
    }


def test_otel_enricher_without_active_span() -> None:
    event = {"event": "template_rendered"}

    assert _otel_enricher(None, "info", event) == {"event": "template_rendered"}


def test_context_filter_sets_record_attributes() -> None:
    record = logging.LogRecord("ztp", logging.INFO, __file__, 1, "msg", None, None)

    assert ContextFilter({"service": "ztp-templates"}).filter(record)
    assert record.service == "ztp-templates"

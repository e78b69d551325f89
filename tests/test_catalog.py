from __future__ import annotations

import pytest

from switchyard.catalog import DEFAULT_MODELS, ModelCatalog
from switchyard.types import ModelInfo

pytestmark = pytest.mark.unit


def _info(model_id: str = "custom-1", **overrides) -> ModelInfo:
    values = {
        "id": model_id,
        "provider": "local",
        "context_window": 4096,
        "max_output_tokens": 1024,
        "supports_tools": False,
        "supports_vision": False,
        "default_temperature": 0.5,
    }
    values.update(overrides)
    return ModelInfo(**values)


def test_defaults_are_registered():
    catalog = ModelCatalog()

    assert len(catalog) == len(DEFAULT_MODELS)
    assert catalog.has("gpt-4o")
    assert "claude-3-haiku-20240307" in catalog
    assert catalog.get("llama3.2").provider == "local"


def test_estimate_cost_uses_per_thousand_prices():
    catalog = ModelCatalog()

    assert catalog.estimate_cost("gpt-4o", 1000, 500) == pytest.approx(0.0125)


def test_estimate_cost_is_none_for_unknown_model():
    assert ModelCatalog().estimate_cost("no-such-model", 1000, 500) is None


def test_estimate_cost_is_none_when_model_has_no_price():
    # Local models carry no pricing; the result is unavailable, not zero.
    assert ModelCatalog().estimate_cost("llama3.2", 1000, 500) is None


def test_fits_in_context_is_strict():
    catalog = ModelCatalog()

    assert catalog.get("gpt-4o").context_window == 128_000
    assert catalog.fits_in_context("gpt-4o", 127_999)
    assert not catalog.fits_in_context("gpt-4o", 128_000)
    assert not catalog.fits_in_context("unknown", 1)


def test_register_overwrites_without_merging():
    catalog = ModelCatalog(include_defaults=False)
    catalog.register(_info(cost_per_1k_input=1.0, cost_per_1k_output=2.0))
    catalog.register(_info(context_window=10))

    info = catalog.get("custom-1")
    assert info.context_window == 10
    assert info.cost_per_1k_input is None
    assert len(catalog) == 1


def test_instances_do_not_share_registrations():
    first = ModelCatalog()
    second = ModelCatalog()

    first.register(_info("only-in-first"))

    assert "only-in-first" in first
    assert "only-in-first" not in second


def test_filters_by_provider_and_capability():
    catalog = ModelCatalog()

    anthropic_ids = {m.id for m in catalog.by_provider("anthropic")}
    assert anthropic_ids == {
        "claude-3-5-sonnet-20241022",
        "claude-3-opus-20240229",
        "claude-3-sonnet-20240229",
        "claude-3-haiku-20240307",
    }
    tool_ids = {m.id for m in catalog.with_capability("tools")}
    assert "llama3.1:70b" in tool_ids
    assert "llama3.2" not in tool_ids
    vision_ids = {m.id for m in catalog.with_capability("vision")}
    assert "gpt-3.5-turbo" not in vision_ids

    with pytest.raises(ValueError):
        catalog.with_capability("audio")  # type: ignore[arg-type]


def test_constructor_accepts_extra_models():
    catalog = ModelCatalog([_info("extra")], include_defaults=False)

    assert [m.id for m in catalog.all()] == ["extra"]

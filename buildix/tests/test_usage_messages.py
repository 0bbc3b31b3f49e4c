"""Localized denial messages."""

import pytest

from buildix.features.usage.messages import (
    SUPPORTED_LOCALES,
    get_count_limit_message,
    get_usage_limit_message,
    resolve_locale,
)
from buildix.models.plan import PlanType
from buildix.models.usage import CountLimitKind, Feature


@pytest.mark.parametrize("locale", SUPPORTED_LOCALES)
@pytest.mark.parametrize("plan", list(PlanType))
@pytest.mark.parametrize("feature", list(Feature))
def test_message_defined_for_every_pair(feature, plan, locale):
    message = get_usage_limit_message(feature, plan, locale)
    assert isinstance(message, str)
    assert message.strip()


def test_free_message_pt_br():
    assert get_usage_limit_message(Feature.PROMPTS, PlanType.FREE) == (
        "Você atingiu o limite de 5 prompts do plano Free. Faça upgrade para continuar criando!"
    )


def test_paid_message_mentions_period():
    message = get_usage_limit_message(Feature.IMAGES, PlanType.MAX, "pt-BR")
    assert message == (
        "Você atingiu o limite de 60 gerações de imagem do plano Max este mês. "
        "Considere fazer upgrade ou aguarde o próximo período."
    )


def test_unlimited_message():
    assert get_usage_limit_message(Feature.HTML_EXPORTS, PlanType.PRO) == (
        "Uso ilimitado de exports HTML disponível no seu plano Pro."
    )


def test_english_message():
    assert get_usage_limit_message(Feature.FIGMA_EXPORTS, PlanType.PRO, "en") == (
        "You reached the Pro plan limit of 20 Figma exports this month. "
        "Consider upgrading or wait for the next period."
    )


@pytest.mark.parametrize(
    "requested,expected",
    [("en", "en"), ("en-US", "en"), ("EN-gb", "en"), ("pt", "pt-BR"), ("pt-br", "pt-BR"), ("fr", "pt-BR"), (None, "pt-BR")],
)
def test_resolve_locale(requested, expected):
    assert resolve_locale(requested) == expected


def test_unknown_plan_uses_free_wording():
    assert get_usage_limit_message(Feature.PROMPTS, "legacy") == get_usage_limit_message(Feature.PROMPTS, PlanType.FREE)


@pytest.mark.parametrize("kind", list(CountLimitKind))
@pytest.mark.parametrize("plan", list(PlanType))
def test_count_message_defined(kind, plan):
    assert get_count_limit_message(kind, plan, "en")


def test_count_message_pages():
    assert get_count_limit_message(CountLimitKind.PAGES, PlanType.FREE, "pt-BR") == (
        "Você atingiu o limite de 2 páginas por projeto do plano Free. Faça upgrade para aumentar o limite."
    )

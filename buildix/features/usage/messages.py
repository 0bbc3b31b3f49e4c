"""
buildix/features/usage/messages.py

Localized denial messages for the usage gate.

Every (feature, plan) pair resolves to a message in every supported
locale; unknown locales fall back to DEFAULT_LOCALE.
"""

from typing import Optional, Union

from buildix.core.config import settings
from buildix.features.plans.service import (
    format_limit,
    get_count_limit,
    get_feature_limit,
    get_plan,
    is_unlimited,
)
from buildix.models.plan import PlanType
from buildix.models.usage import CountLimitKind, Feature


DEFAULT_LOCALE = "pt-BR"
SUPPORTED_LOCALES = ("pt-BR", "en")

FEATURE_LABELS = {
    "pt-BR": {
        Feature.PROMPTS: "prompts",
        Feature.IMAGES: "gerações de imagem",
        Feature.FIGMA_EXPORTS: "exports para Figma",
        Feature.HTML_EXPORTS: "exports HTML",
    },
    "en": {
        Feature.PROMPTS: "prompts",
        Feature.IMAGES: "image generations",
        Feature.FIGMA_EXPORTS: "Figma exports",
        Feature.HTML_EXPORTS: "HTML exports",
    },
}

COUNT_LABELS = {
    "pt-BR": {
        CountLimitKind.PAGES: "páginas por projeto",
        CountLimitKind.IMAGE_UPLOADS: "imagens enviadas",
    },
    "en": {
        CountLimitKind.PAGES: "pages per project",
        CountLimitKind.IMAGE_UPLOADS: "uploaded images",
    },
}

TEMPLATES = {
    "pt-BR": {
        "unlimited": "Uso ilimitado de {label} disponível no seu plano {plan}.",
        "free": "Você atingiu o limite de {limit} {label} do plano Free. Faça upgrade para continuar criando!",
        "paid": (
            "Você atingiu o limite de {limit} {label} do plano {plan} este mês. "
            "Considere fazer upgrade ou aguarde o próximo período."
        ),
        "count": "Você atingiu o limite de {limit} {label} do plano {plan}. Faça upgrade para aumentar o limite.",
    },
    "en": {
        "unlimited": "Unlimited {label} available on your {plan} plan.",
        "free": "You reached the Free plan limit of {limit} {label}. Upgrade to keep creating!",
        "paid": (
            "You reached the {plan} plan limit of {limit} {label} this month. "
            "Consider upgrading or wait for the next period."
        ),
        "count": "You reached the {plan} plan limit of {limit} {label}. Upgrade to raise the limit.",
    },
}


def resolve_locale(locale: Optional[str] = None) -> str:
    """Match a requested locale (case-insensitive, "pt" and "en-US" style prefixes accepted)."""
    requested = (locale or settings.USAGE_MESSAGE_LOCALE or DEFAULT_LOCALE).strip().lower()
    for supported in SUPPORTED_LOCALES:
        if requested == supported.lower():
            return supported
    prefix = requested.split("-")[0]
    for supported in SUPPORTED_LOCALES:
        if supported.lower().split("-")[0] == prefix:
            return supported
    return DEFAULT_LOCALE


def get_usage_limit_message(
    feature: Feature,
    plan_id: Union[PlanType, str, None],
    locale: Optional[str] = None,
) -> str:
    """Denial text for a feature under a plan. Pure lookup, defined for every pair."""
    lang = resolve_locale(locale)
    plan = get_plan(plan_id)
    limit = get_feature_limit(plan.limits, feature)
    label = FEATURE_LABELS[lang][feature]
    templates = TEMPLATES[lang]

    if is_unlimited(limit):
        return templates["unlimited"].format(label=label, plan=plan.name)
    if plan.id == PlanType.FREE:
        return templates["free"].format(limit=format_limit(limit), label=label)
    return templates["paid"].format(limit=format_limit(limit), label=label, plan=plan.name)


def get_count_limit_message(
    kind: CountLimitKind,
    plan_id: Union[PlanType, str, None],
    locale: Optional[str] = None,
) -> str:
    lang = resolve_locale(locale)
    plan = get_plan(plan_id)
    limit = get_count_limit(plan.limits, kind)
    label = COUNT_LABELS[lang][kind]
    if is_unlimited(limit):
        return TEMPLATES[lang]["unlimited"].format(label=label, plan=plan.name)
    return TEMPLATES[lang]["count"].format(limit=format_limit(limit), label=label, plan=plan.name)

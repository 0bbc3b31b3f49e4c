from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


AI_MODELS = ("gemini", "claude")


class AIConfig(BaseModel):
    """Site-wide AI model toggles (site_settings row "default")."""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    enable_gemini: bool = True
    enable_claude: bool = True
    default_ai_model: str = Field(default="gemini", alias="defaultAIModel")

    @property
    def enabled_models(self) -> List[str]:
        models = []
        if self.enable_gemini:
            models.append("gemini")
        if self.enable_claude:
            models.append("claude")
        return models


class AIConfigUpdate(BaseModel):
    """Partial update; omitted fields keep their stored value."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    enable_gemini: Optional[bool] = None
    enable_claude: Optional[bool] = None
    default_ai_model: Optional[str] = Field(default=None, alias="defaultAIModel")

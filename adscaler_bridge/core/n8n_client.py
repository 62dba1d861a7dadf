"""n8n webhook client for the ad copy workflow."""
import logging
from typing import Any

from .aiohttp_request_manager import AiohttpRequestManager, validate_response
from .errors import ConfigurationError
from .scaler_types import AdCopyRecord, AdGeneratorForm, GenerateAdCopyResponse
from .settings import Settings

logger = logging.getLogger(__name__)

PROVIDER = "n8n"


class N8nClient:
    def __init__(self, settings: Settings):
        self._settings = settings
        self._requests = AiohttpRequestManager(timeout=settings.request_timeout)

    @property
    def is_configured(self) -> bool:
        return self._settings.n8n_configured

    def _endpoint(self, path: str) -> str:
        if not self.is_configured:
            raise ConfigurationError(
                "n8n webhook URL not configured. Set N8N_WEBHOOK_BASE_URL in the environment."
            )
        base = self._settings.n8n_webhook_base_url.rstrip("/")
        return f"{base}/{path.strip('/')}"

    async def fetch_ad_copy_records(self) -> list[AdCopyRecord]:
        url = self._endpoint(self._settings.n8n_ad_copy_path)
        data = await self._requests.get(url)
        if not isinstance(data, list):
            return []
        return [validate_response(AdCopyRecord, r, url, PROVIDER) for r in data]

    async def fetch_ad_copy_record(self, record_id: str) -> AdCopyRecord:
        url = self._endpoint(self._settings.n8n_ad_copy_path)
        data = await self._requests.get(url, params={"recordId": record_id})
        return validate_response(AdCopyRecord, data, url, PROVIDER)

    async def trigger_generate_ad_copy(self, form: AdGeneratorForm) -> GenerateAdCopyResponse:
        url = self._endpoint(self._settings.n8n_ad_copy_path)
        data = await self._requests.post(url, form.to_payload())
        response = validate_response(GenerateAdCopyResponse, data, url, PROVIDER)
        logger.info("Ad copy generation started for record %s", response.record_id)
        return response

    async def trigger_generate_images(self, record_id: str) -> Any:
        url = self._endpoint(self._settings.n8n_generate_images_path)
        return await self._requests.get(url, params={"recordId": record_id})

    async def trigger_generate_prompts(self, record_id: str) -> Any:
        url = self._endpoint(self._settings.n8n_generate_prompts_path)
        return await self._requests.get(url, params={"recordId": record_id})

    async def close(self):
        await self._requests.close()

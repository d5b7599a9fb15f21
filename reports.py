"""Report history, ranks, shelters, and inquiries on the backend."""

import logging

import config
from api_client import BackendClient, BackendError
from auth import Session, failure_result

logger = logging.getLogger(__name__)


class ReportsClient:
    """Read-mostly user endpoints. Every method returns ``{"success": bool, ...}``."""

    def __init__(self, backend: BackendClient, session: Session):
        self.backend = backend
        self.session = session

    async def _get(self, path: str, key: str, authenticated: bool = True, **kwargs) -> dict:
        headers = self.backend.auth_headers(self.session.token) if authenticated else {}
        try:
            data = await self.backend.request_json("GET", path, headers=headers, **kwargs)
        except BackendError as e:
            logger.error("GET %s failed: %s", path, e)
            return failure_result(e, self.backend.base_url)
        return {"success": True, key: data}

    async def get_my_reports(self) -> dict:
        result = await self._get(config.API_ENDPOINTS["MY_REPORTS"], "reports")
        if result["success"] and isinstance(result["reports"], dict):
            result["reports"] = result["reports"].get("reports", [])
        return result

    async def get_report_detail(self, report_id) -> dict:
        return await self._get(f"{config.API_ENDPOINTS['REPORT_DETAIL']}/{report_id}", "report")

    async def get_my_rank(self) -> dict:
        return await self._get(config.API_ENDPOINTS["MY_RANK"], "rank_info")

    async def get_all_ranks(self) -> dict:
        return await self._get(config.API_ENDPOINTS["ALL_RANKS"], "ranks", authenticated=False)

    async def get_shelters(self, latitude: float, longitude: float) -> dict:
        return await self._get(
            config.API_ENDPOINTS["SHELTERS"], "shelters",
            authenticated=False,
            params={"latitude": latitude, "longitude": longitude},
        )

    async def get_my_inquiries(self) -> dict:
        return await self._get(config.API_ENDPOINTS["INQUIRIES"], "inquiries")

    async def submit_inquiry(self, title: str, content: str) -> dict:
        try:
            data = await self.backend.request_json(
                "POST", config.API_ENDPOINTS["INQUIRIES"],
                json={"title": title, "content": content},
                headers=self.backend.auth_headers(self.session.token),
            )
        except BackendError as e:
            logger.error("Submit inquiry failed: %s", e)
            return failure_result(e, self.backend.base_url)
        return {"success": True, "inquiry": data.get("inquiry")}

"""
Environment information
"""

from typing import Any, Dict

from .client import DynatraceHttpClient

ENVIRONMENT_INFORMATION_PATH = "/platform/app-engine/registry/v1/platform/environment-information"


async def get_environment_info(client: DynatraceHttpClient) -> Dict[str, Any]:
    """Environment (tenant) information such as environmentId and createTime."""
    return await client.request(method="GET", path=ENVIRONMENT_INFORMATION_PATH)

"""Uploads to the bundler."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from .api import Api
from .models import UploadResponse
from .utils import Utils

logger = logging.getLogger(__name__)


class Uploader:
    """
    Posts raw data to the bundler, paid from this session's balance.

    The payload is sent as-is; it is not wrapped in a signed ANS-104 data
    item. Nodes that only accept signed data items will reject it, so
    callers targeting those nodes must build and sign the item themselves
    (``currency.sign``, ``currency.signature_type`` and
    ``currency.get_public_key`` give the pieces) and pass its bytes here.
    """

    def __init__(self, api: Api, utils: Utils):
        self.api = api
        self.utils = utils

    async def upload(self, data: Union[bytes, str]) -> UploadResponse:
        if isinstance(data, str):
            data = data.encode("utf-8")
        res = await self.api.post(
            f"/tx/{self.utils.currency}",
            content=data,
            headers={"Content-Type": "application/octet-stream"},
        )
        # 201: the bundler already holds this data
        Utils.check_and_throw(res, "Uploading transaction", [201])
        body = Utils.response_body(res)
        tx_id = body.get("id") if isinstance(body, dict) else None
        logger.info(f"Uploaded {len(data)} bytes to {self.api.base_url} ({res.status_code})")
        return UploadResponse(id=tx_id, status=res.status_code, body=body)

    async def upload_file(self, path: Union[str, Path]) -> UploadResponse:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Unable to access path: {path}")
        return await self.upload(path.read_bytes())

"""Blob storage access: download uploaded documents by path."""

import asyncio
from pathlib import Path
from typing import Optional

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.identity.aio import DefaultAzureCredential
from azure.storage.blob.aio import BlobServiceClient

from document_chat.config import Settings, StorageBackend, get_settings
from document_chat.utils.errors import NotFoundError, StorageError
from document_chat.utils.logging import get_logger

logger = get_logger("storage_service")


class LocalStorage:
    """Files under a root directory; paths are relative to that root."""

    def __init__(self, root: str):
        self.root = Path(root).resolve()

    def _resolve(self, file_path: str) -> Path:
        path = (self.root / file_path.lstrip("/")).resolve()
        if self.root != path and self.root not in path.parents:
            raise StorageError(f"Invalid file path: {file_path}")
        return path

    async def download(self, file_path: str) -> bytes:
        path = self._resolve(file_path)
        if not path.is_file():
            raise NotFoundError("File", file_path)
        return await asyncio.to_thread(path.read_bytes)

    async def close(self) -> None:
        pass


class AzureBlobStorage:
    """Blobs in one container of an Azure Storage account."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._client: Optional[BlobServiceClient] = None

    async def _get_client(self) -> BlobServiceClient:
        if self._client is not None:
            return self._client

        storage = self.settings.storage
        try:
            if storage.connection_string:
                self._client = BlobServiceClient.from_connection_string(storage.connection_string)
                logger.info("Created BlobServiceClient with connection string")
            elif storage.account_name and storage.use_managed_identity:
                account_url = f"https://{storage.account_name}.blob.core.windows.net"
                self._client = BlobServiceClient(
                    account_url=account_url, credential=DefaultAzureCredential()
                )
                logger.info(f"Created BlobServiceClient with Managed Identity: {storage.account_name}")
            else:
                raise StorageError(
                    "Storage not configured. Set STORAGE_CONNECTION_STRING, or STORAGE_ACCOUNT_NAME "
                    "with STORAGE_USE_MANAGED_IDENTITY"
                )
            return self._client
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"Failed to create BlobServiceClient: {e}", exc_info=True)
            raise StorageError(f"Failed to initialize storage client: {str(e)}") from e

    async def download(self, file_path: str) -> bytes:
        client = await self._get_client()
        blob_client = client.get_container_client(self.settings.storage.container).get_blob_client(
            file_path
        )
        try:
            stream = await blob_client.download_blob()
            return await stream.readall()
        except ResourceNotFoundError as e:
            raise NotFoundError("File", file_path) from e
        except AzureError as e:
            logger.error(f"Azure Storage error downloading file: {file_path} - {e}", exc_info=True)
            raise StorageError(f"Failed to download file from storage: {str(e)}") from e

    async def close(self) -> None:
        if self._client:
            await self._client.close()
            self._client = None
            logger.info("Storage client closed")


class StorageService:
    """
    Download uploaded documents by their storage locator.

    Backends:
    - local: files under STORAGE_LOCAL_ROOT (default)
    - azure: Azure Blob Storage container STORAGE_CONTAINER
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        if self.settings.storage.backend == StorageBackend.AZURE:
            self._backend = AzureBlobStorage(self.settings)
        else:
            self._backend = LocalStorage(self.settings.storage.local_root)

    async def download_file(self, file_path: str) -> bytes:
        """
        Download a file.

        Args:
            file_path: Storage locator recorded on the document

        Returns:
            File content as bytes

        Raises:
            NotFoundError: If nothing is stored at ``file_path``
            StorageError: If the download fails
        """
        logger.info(f"Downloading file: {file_path}")
        try:
            data = await self._backend.download(file_path)
        except (NotFoundError, StorageError):
            raise
        except Exception as e:
            logger.error(f"Unexpected error downloading file: {file_path} - {e}", exc_info=True)
            raise StorageError(f"Failed to download file: {str(e)}") from e

        logger.info(f"Successfully downloaded file: {file_path}, size={len(data)} bytes")
        return data

    async def close(self) -> None:
        """Close the backend client."""
        await self._backend.close()

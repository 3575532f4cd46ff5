from src.providers.temp_files.local_temp_file_store import LocalTempFileStore

__all__ = ["LocalTempFileStore"]

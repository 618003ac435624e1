from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PlantCreate(BaseModel):
    name: str = Field(min_length=1)
    ip_address: str = Field(min_length=1)
    port: int = 3000
    api_base_path: Optional[str] = "/api"
    auth_token: Optional[str] = None
    use_https: bool = False
    is_active: bool = True


class PlantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    ip_address: str
    port: int
    api_base_path: Optional[str] = None
    use_https: bool
    is_active: bool
    last_sync: Optional[datetime] = None


class PlantUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    ip_address: Optional[str] = Field(default=None, min_length=1)
    port: Optional[int] = None
    api_base_path: Optional[str] = None
    auth_token: Optional[str] = None
    use_https: Optional[bool] = None
    is_active: Optional[bool] = None


class PlantDetail(PlantOut):
    total_entries: int = 0
    earliest_entry: Optional[datetime] = None
    latest_entry: Optional[datetime] = None


class PlantDeleteResult(BaseModel):
    message: str
    entries_deleted: int


class PlantSyncResult(BaseModel):
    plant_id: int
    plant_name: str
    success: bool
    entries_fetched: int = 0
    entries_inserted: int = 0
    employees_updated: int = 0
    assignments_updated: int = 0
    error: Optional[str] = None


class SyncAllResult(BaseModel):
    results: List[PlantSyncResult]
    total_inserted: int


class ConnectionTestResult(BaseModel):
    success: bool
    message: str
    status_code: Optional[int] = None

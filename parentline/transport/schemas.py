# parentline/transport/schemas.py
from pydantic import BaseModel


class DatasetOut(BaseModel):
    name: str
    kind: str
    title: str
    stream_url: str


class DatasetsOut(BaseModel):
    datasets: list[DatasetOut]


class HealthOut(BaseModel):
    status: str

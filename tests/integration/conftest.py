"""Integration test fixtures — Docker-based search backends with mock data.

Expects backends to be running, e.g.:
    docker run -p 8108:8108 typesense/typesense:27.1 --data-dir /tmp --api-key=test-api-key
    docker run -p 7700:7700 -e MEILI_MASTER_KEY=test-master-key getmeili/meilisearch:v1.10

Every test module seeds its own collection through the adapter under test.
"""

from __future__ import annotations

import time
from typing import Any

import httpx
import pytest

TYPESENSE_URL = "http://localhost:8108"
TYPESENSE_API_KEY = "test-api-key"
MEILISEARCH_URL = "http://localhost:7700"
MEILISEARCH_API_KEY = "test-master-key"

MOCK_DOCUMENTS: list[dict[str, Any]] = [
    {
        "id": "doc-001",
        "title": "Advances in Solar Nowcasting Using Deep Learning",
        "content": (
            "This paper presents a deep learning approach for solar irradiance nowcasting "
            "from satellite imagery, predicting irradiance up to 4 hours ahead."
        ),
        "category": "energy",
        "price": 120,
        "published_year": 2024,
    },
    {
        "id": "doc-002",
        "title": "Transformer Models for Natural Language Understanding",
        "content": "We survey transformer-based models for language understanding benchmarks.",
        "category": "nlp",
        "price": 45,
        "published_year": 2023,
    },
    {
        "id": "doc-003",
        "title": "Federated Learning for Privacy-Preserving Medical Imaging",
        "content": "Federated averaging across hospital sites keeps patient data local.",
        "category": "medicine",
        "price": 80,
        "published_year": 2024,
    },
    {
        "id": "doc-004",
        "title": "Wind Power Forecasting with Gradient Boosting",
        "content": "Short-term wind power output forecasting using gradient boosted trees.",
        "category": "energy",
        "price": 30,
        "published_year": 2022,
    },
    {
        "id": "doc-005",
        "title": "Graph Neural Networks for Drug Discovery",
        "content": "Message passing networks predict molecular properties for drug discovery.",
        "category": "chemistry",
        "price": 95,
        "published_year": 2024,
    },
]


def _wait_for_service(url: str, timeout: float = 60.0) -> bool:
    """Block until *url* returns HTTP 200, or timeout."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            r = httpx.get(url, timeout=5)
            if r.status_code == 200:
                return True
        except httpx.HTTPError:
            pass
        time.sleep(2)
    return False


@pytest.fixture(scope="session")
def typesense_ready() -> dict[str, Any]:
    """Ensure Typesense is running; returns the adapter connection options."""
    if not _wait_for_service(f"{TYPESENSE_URL}/health"):
        pytest.skip("Typesense not available at localhost:8108")
    return {"api_key": TYPESENSE_API_KEY, "nodes": [{"host": "localhost", "port": 8108}], "num_retries": 1}


@pytest.fixture(scope="session")
def meilisearch_ready() -> dict[str, Any]:
    """Ensure MeiliSearch is running; returns the adapter connection options."""
    if not _wait_for_service(f"{MEILISEARCH_URL}/health"):
        pytest.skip("MeiliSearch not available at localhost:7700")
    return {"url": MEILISEARCH_URL, "api_key": MEILISEARCH_API_KEY, "num_retries": 1}


@pytest.fixture
def mock_documents() -> list[dict[str, Any]]:
    return [dict(doc) for doc in MOCK_DOCUMENTS]

"""Sample records for a fresh index."""

from __future__ import annotations

from oaexplorer.models.record import OARecord

_SAMPLES = [
    {
        "title": "Large Language Models for Scientific Discovery",
        "authors": ["John Doe", "Jane Smith"],
        "year": 2023,
        "venue": "arXiv",
        "abstract": (
            "This paper explores the use of large language models for scientific discovery "
            "and research applications."
        ),
        "source": "arxiv",
        "sourceId": "2301.00001",
        "oaStatus": "preprint",
        "bestPdfUrl": "https://arxiv.org/pdf/2301.00001.pdf",
        "landingPage": "https://arxiv.org/abs/2301.00001",
        "topics": ["machine learning", "natural language processing", "scientific discovery"],
        "language": "en",
        "createdAt": "2023-01-01T00:00:00Z",
    },
    {
        "title": "Open Access Publishing Trends in Computer Science",
        "authors": ["Alice Johnson", "Bob Wilson"],
        "year": 2023,
        "venue": "Journal of Open Science",
        "abstract": "An analysis of open access publishing trends in computer science journals over the past decade.",
        "source": "core",
        "sourceId": "12345",
        "oaStatus": "published",
        "bestPdfUrl": "https://example.com/paper12345.pdf",
        "landingPage": "https://example.com/paper/12345",
        "topics": ["open access", "publishing", "computer science"],
        "language": "en",
        "createdAt": "2023-06-15T00:00:00Z",
    },
    {
        "title": "Machine Learning Applications in Biomedical Research",
        "authors": ["Carol Davis", "David Brown"],
        "year": 2023,
        "venue": "Nature Machine Intelligence",
        "abstract": (
            "A comprehensive review of machine learning applications in biomedical research "
            "and clinical practice."
        ),
        "source": "europepmc",
        "sourceId": "67890",
        "oaStatus": "published",
        "bestPdfUrl": "https://example.com/biomedical-ml.pdf",
        "landingPage": "https://example.com/paper/67890",
        "topics": ["machine learning", "biomedical research", "clinical applications"],
        "language": "en",
        "createdAt": "2023-09-20T00:00:00Z",
    },
]


def sample_records() -> list[OARecord]:
    """``arxiv:2301.00001``, ``core:12345`` and ``europepmc:67890``."""
    return [OARecord.model_validate(sample) for sample in _SAMPLES]

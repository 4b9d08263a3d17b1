"""Source connectors: one HTTP client per open-access repository.

Built-in connectors:
  - arxiv: arXiv Atom query API (preprints)
  - ncbi: NCBI E-utilities esearch + efetch (PubMed)
  - europepmc: Europe PMC REST search
  - doaj: Directory of Open Access Journals article search
  - core: CORE v3 works search (API key required)
  - biorxiv / medrxiv: bioRxiv and medRxiv details API
  - openaire: OpenAIRE publications search
  - datacite: DataCite DOI metadata
  - opencitations: OpenCitations COCI citing works for a DOI

Implement ``SourceConnector`` to add another repository.
"""

"""
AlertSwarm - multi-agent first-pass alert investigation

Coordinates specialist lookup agents over a security alert:
- Network agent: IP reputation (VirusTotal, AbuseIPDB, AlienVault OTX) and log search
- File agent: file hash reputation (VirusTotal)
- User agent: directory lookup and behavioural risk scoring

Architecture: round-based Manager (plan -> dispatch -> collect -> decide)
with an LLM task planner and historical case retrieval.
"""

__version__ = "0.1.0"

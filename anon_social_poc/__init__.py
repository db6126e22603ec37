"""
Anonymous one-time group actions (posts and votes) - Proof of Concept.

⚠️ DRAFT - the ring proof backend requires cryptographic review before
production use.
"""

__version__ = "0.1.0"

DISCLAIMER = """
⚠️  PROOF OF CONCEPT - NOT PRODUCTION READY
  - Membership proofs are linkable ring signatures; size grows with the group
  - The mock backend accepts forged proofs and is for tests only
  - Identity secrets are derived locally and must never be shared
"""


def print_disclaimer() -> None:
    print(DISCLAIMER)

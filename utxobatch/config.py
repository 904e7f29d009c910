import logging
import os

POLICIES = ("baseline", "maxfee")
DEFAULT_POLICY = "maxfee"
LOG_LEVEL = os.getenv("UTXOBATCH_LOG_LEVEL", "WARNING").upper()
DATA_DIR = os.getenv("UTXOBATCH_DATA_DIR", os.path.join(os.getcwd(), "utxobatch_data"))


def get_policy() -> str:
    policy = os.getenv("UTXOBATCH_POLICY", DEFAULT_POLICY).strip().lower()
    if policy not in POLICIES:
        return DEFAULT_POLICY
    return policy


def configure_logging(level: str = "") -> None:
    name = (level or os.getenv("UTXOBATCH_LOG_LEVEL", LOG_LEVEL)).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

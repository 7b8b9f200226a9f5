"""Look up a signed VAA from the guardian REST API.

Performs a single lookup. Useful for checking whether a stuck transfer
has been signed by the guardians.

Environment variables
---------------------
- ``CHAIN_ID``: Bridge chain id of the emitter chain, e.g. ``2`` for Ethereum (required).
- ``EMITTER``: Emitter contract address, hex (required).
- ``SEQUENCE``: Emitter sequence number of the message (required).
- ``NETWORK``: ``mainnet`` (default) or ``testnet``.
- ``LOG_LEVEL``: Logging level (default: ``info``).

Usage::

    CHAIN_ID=2 EMITTER=0x3ee18B2214AFF97000D974cf647E7C347E8fa585 SEQUENCE=1 python scripts/fetch-signed-vaa.py

    # Testnet
    NETWORK=testnet CHAIN_ID=10002 EMITTER=0xDB5492265f6038831E89f495670FF909aDe94bd9 SEQUENCE=1 python scripts/fetch-signed-vaa.py
"""

import logging
import os

from tabulate import tabulate

from bridge_routes.attestation import GUARDIAN_API_URL, GUARDIAN_TESTNET_API_URL, fetch_signed_vaa
from bridge_routes.session import create_attestation_session
from bridge_routes.utils import setup_console_logging

logger = logging.getLogger(__name__)


def main():
    log_level = os.environ.get("LOG_LEVEL", "info")
    setup_console_logging(default_log_level=log_level)

    chain_id = os.environ.get("CHAIN_ID")
    assert chain_id, "CHAIN_ID environment variable required"

    emitter = os.environ.get("EMITTER")
    assert emitter, "EMITTER environment variable required"

    sequence = os.environ.get("SEQUENCE")
    assert sequence, "SEQUENCE environment variable required"

    network = os.environ.get("NETWORK", "mainnet").lower()
    assert network in ("mainnet", "testnet"), f"NETWORK must be 'mainnet' or 'testnet', got '{network}'"

    api_url = GUARDIAN_TESTNET_API_URL if network == "testnet" else GUARDIAN_API_URL
    session = create_attestation_session(api_url=api_url)

    vaa = fetch_signed_vaa(session, int(chain_id), emitter, int(sequence))

    rows = [
        ("API", api_url),
        ("Chain id", chain_id),
        ("Emitter", emitter),
        ("Sequence", sequence),
    ]
    if vaa is None:
        rows.append(("Status", "Not signed yet"))
    else:
        rows.append(("Status", "Signed"))
        rows.append(("VAA size", f"{len(vaa)} bytes"))

    print(tabulate(rows, tablefmt="simple"))

    if vaa is not None:
        print()
        print(vaa.hex())


if __name__ == "__main__":
    main()

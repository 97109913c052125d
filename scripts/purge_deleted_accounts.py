#!/usr/bin/env python3
"""
Purge soft-deleted Cognitive Services accounts

Deleted Azure OpenAI / AI Services accounts stay in a soft-deleted state and
keep their names reserved. This script purges every soft-deleted account in
a subscription and then reports anything that is left.

Usage:
    AZURE_SUBSCRIPTION_ID=<subscription-id> python scripts/purge_deleted_accounts.py

Requirements:
    - azure-identity
    - requests
    - python-dotenv
"""

import os
import sys
import logging
from typing import List, Dict, Any, Optional

import requests
from azure.identity import DefaultAzureCredential
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

ARM_ENDPOINT = "https://management.azure.com"
ARM_SCOPE = "https://management.azure.com/.default"
API_VERSION = "2023-05-01"

AZURE_SUBSCRIPTION_ID = os.getenv("AZURE_SUBSCRIPTION_ID", "")


def _headers(credential) -> Dict[str, str]:
    token = credential.get_token(ARM_SCOPE)
    return {"Authorization": f"Bearer {token.token}"}


def list_deleted_accounts(credential, subscription_id: str, session=requests) -> List[Dict[str, Any]]:
    """List soft-deleted Cognitive Services accounts, following nextLink pages."""
    url: Optional[str] = (
        f"{ARM_ENDPOINT}/subscriptions/{subscription_id}"
        f"/providers/Microsoft.CognitiveServices/deletedAccounts?api-version={API_VERSION}"
    )
    accounts = []
    while url:
        resp = session.get(url, headers=_headers(credential), timeout=30)
        resp.raise_for_status()
        body = resp.json()
        accounts.extend(body.get("value", []))
        url = body.get("nextLink")
    return accounts


def purge_account(credential, account_id: str, session=requests) -> bool:
    """Purge one deleted account by its resource id. 404 means it is already gone."""
    resp = session.delete(
        f"{ARM_ENDPOINT}{account_id}?api-version={API_VERSION}",
        headers=_headers(credential),
        timeout=60,
    )
    if resp.status_code == 404:
        logger.info(f"Already purged: {account_id}")
        return True
    if resp.status_code in (200, 202, 204):
        logger.info(f"Purged: {account_id}")
        return True
    logger.error(f"Purge of {account_id} returned {resp.status_code}: {resp.text}")
    return False


def main(credential=None, subscription_id: Optional[str] = None, session=requests) -> int:
    subscription_id = subscription_id or AZURE_SUBSCRIPTION_ID
    if not subscription_id:
        logger.error("AZURE_SUBSCRIPTION_ID not configured")
        return 1

    credential = credential or DefaultAzureCredential()

    logger.info("🗑️  Purging deleted Cognitive Services accounts...")
    for account in list_deleted_accounts(credential, subscription_id, session):
        purge_account(credential, account["id"], session)

    logger.info("✅ Verifying all resources have been purged...")
    remaining = list_deleted_accounts(credential, subscription_id, session)
    if not remaining:
        logger.info("✅ All deleted accounts have been purged successfully.")
        return 0

    logger.warning(f"⚠️  Warning: {len(remaining)} deleted account(s) still remain.")
    for account in remaining:
        logger.warning(f"   {account.get('name')}  {account.get('location')}")
    return 1


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    sys.exit(main())

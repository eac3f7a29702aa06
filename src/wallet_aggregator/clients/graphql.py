"""Sui GraphQL queries and a thin client on top of RetryingFetcher."""

import logging
from typing import Any

from ..config import SuiConfig
from .errors import UpstreamUnavailableError
from .http_client import HttpRequest, RateLimitTracker, RetryingFetcher
from .sui_types import PageInfo, get_path

logger = logging.getLogger(__name__)

BALANCE_CHANGES_FRAGMENT = """
          balanceChanges {
            nodes {
              owner {
                address
              }
              amount
              coinType {
                repr
              }
            }
          }
"""

TRANSACTION_BLOCKS_QUERY = (
    """
query WalletTransactions($address: SuiAddress!, $last: Int!, $after: String, $scanLimit: Int) {
  transactionBlocks(
    filter: { affectedAddress: $address }
    last: $last
    after: $after
    scanLimit: $scanLimit
  ) {
    nodes {
      effects {
        status
        timestamp
"""
    + BALANCE_CHANGES_FRAGMENT
    + """
      }
    }
    pageInfo {
      hasNextPage
      endCursor
    }
  }
}
"""
)

BALANCES_QUERY = """
query WalletBalances($address: SuiAddress!, $first: Int!, $after: String) {
  address(address: $address) {
    balances(first: $first, after: $after) {
      nodes {
        coinType {
          repr
        }
        coinObjectCount
        totalBalance
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""

OBJECT_LAST_TRADE_QUERY = (
    """
query ObjectLastTrade($objectId: SuiAddress!, $scanLimit: Int) {
  transactionBlocks(
    last: 1
    scanLimit: $scanLimit
    filter: { affectedObject: $objectId, kind: PROGRAMMABLE_TX }
  ) {
    nodes {
      digest
      effects {
"""
    + BALANCE_CHANGES_FRAGMENT
    + """
      }
    }
  }
}
"""
)

OWNED_OBJECTS_BY_TYPE_QUERY = """
query OwnedObjects($owner: SuiAddress!, $type: String!, $first: Int!, $after: String) {
  address(address: $owner) {
    objects(first: $first, after: $after, filter: { type: $type }) {
      nodes {
        address
        contents {
          json
        }
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""

KIOSK_FIELDS_QUERY = """
query KioskFields($kiosk: SuiAddress!, $first: Int!, $after: String) {
  owner(address: $kiosk) {
    dynamicFields(first: $first, after: $after) {
      nodes {
        name {
          type {
            repr
          }
          json
        }
        value {
          __typename
          ... on MoveObject {
            address
            contents {
              type {
                repr
              }
              json
            }
          }
          ... on MoveValue {
            type {
              repr
            }
            json
          }
        }
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""


class SuiGraphQLClient:
    """Executes queries against the Sui GraphQL endpoint."""

    def __init__(self, config: SuiConfig, fetcher: RetryingFetcher):
        self.config = config
        self.fetcher = fetcher

    async def execute(
        self,
        query: str,
        variables: dict[str, Any],
        tracker: RateLimitTracker | None = None,
    ) -> dict[str, Any]:
        """Run a query and return its ``data`` object.

        Raises:
            UpstreamUnavailableError: transport failure or a response without data.
        """
        request = HttpRequest(
            method="POST",
            url=self.config.graphql_url,
            headers={"Content-Type": "application/json", "accept": "*/*"},
            json_body={"query": query, "variables": variables},
        )
        response = await self.fetcher.fetch(request, tracker=tracker)
        payload = response.json()

        if not isinstance(payload, dict):
            raise UpstreamUnavailableError(f"Unexpected GraphQL response type: {type(payload).__name__}")

        errors = payload.get("errors")
        data = payload.get("data")
        if errors:
            messages = "; ".join(str(error.get("message", error)) for error in errors if isinstance(error, dict))
            if not data:
                raise UpstreamUnavailableError(f"GraphQL errors: {messages or errors}")
            logger.warning(f"⚠️ GraphQL returned partial data with errors: {messages}")
        if not isinstance(data, dict):
            raise UpstreamUnavailableError("GraphQL response has no data")
        return data

    async def transaction_blocks_page(
        self,
        address: str,
        page_size: int,
        cursor: str | None = None,
        tracker: RateLimitTracker | None = None,
    ) -> tuple[list[dict[str, Any]], PageInfo]:
        data = await self.execute(
            TRANSACTION_BLOCKS_QUERY,
            {"address": address, "last": page_size, "after": cursor, "scanLimit": self.config.scan_limit},
            tracker=tracker,
        )
        connection = data.get("transactionBlocks")
        if not isinstance(connection, dict):
            raise UpstreamUnavailableError("Unexpected response structure: missing transactionBlocks")
        return connection.get("nodes") or [], PageInfo.from_dict(connection.get("pageInfo"))

    async def balances_page(
        self,
        address: str,
        page_size: int,
        cursor: str | None = None,
        tracker: RateLimitTracker | None = None,
    ) -> tuple[list[dict[str, Any]], PageInfo]:
        data = await self.execute(
            BALANCES_QUERY,
            {"address": address, "first": page_size, "after": cursor},
            tracker=tracker,
        )
        balances = get_path(data, "address", "balances")
        if not isinstance(balances, dict):
            raise UpstreamUnavailableError("No balance data returned from GraphQL")
        return balances.get("nodes") or [], PageInfo.from_dict(balances.get("pageInfo"))

    async def latest_object_transaction(self, object_id: str) -> dict[str, Any] | None:
        """Most recent programmable transaction block affecting an object."""
        data = await self.execute(OBJECT_LAST_TRADE_QUERY, {"objectId": object_id, "scanLimit": self.config.scan_limit})
        connection = data.get("transactionBlocks")
        if not isinstance(connection, dict):
            raise UpstreamUnavailableError(f"Unexpected response structure for object {object_id}")
        nodes = connection.get("nodes") or []
        if not isinstance(nodes, list) or (nodes and not isinstance(nodes[0], dict)):
            raise UpstreamUnavailableError(f"Malformed transaction block for object {object_id}")
        return nodes[0] if nodes else None

    async def owned_objects_page(
        self,
        owner: str,
        type_filter: str,
        cursor: str | None = None,
        page_size: int = 50,
    ) -> tuple[list[dict[str, Any]], PageInfo]:
        data = await self.execute(
            OWNED_OBJECTS_BY_TYPE_QUERY,
            {"owner": owner, "type": type_filter, "first": page_size, "after": cursor},
        )
        objects = get_path(data, "address", "objects")
        if not isinstance(objects, dict):
            raise UpstreamUnavailableError(f"No owned objects returned for {owner}")
        return objects.get("nodes") or [], PageInfo.from_dict(objects.get("pageInfo"))

    async def dynamic_fields_page(
        self,
        owner: str,
        cursor: str | None = None,
        page_size: int = 50,
    ) -> tuple[list[dict[str, Any]], PageInfo]:
        data = await self.execute(KIOSK_FIELDS_QUERY, {"kiosk": owner, "first": page_size, "after": cursor})
        fields = get_path(data, "owner", "dynamicFields")
        if not isinstance(fields, dict):
            raise UpstreamUnavailableError(f"No dynamic fields returned for {owner}")
        return fields.get("nodes") or [], PageInfo.from_dict(fields.get("pageInfo"))

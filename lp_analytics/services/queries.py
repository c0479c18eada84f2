"""
GraphQL documents for the exchange and blocks subgraphs.

Static documents take GraphQL variables. Builders that batch many lookups
into one request return a document whose top-level fields are aliased by
timestamp (`t<timestamp>`) so results can be mapped back to their inputs.
"""
from typing import Iterable, List, Sequence

from lp_analytics.services.models import Block

PAIR_FIELDS = """
  fragment PairFields on Pair {
    id
    txCount
    token0 {
      id
      symbol
      name
      totalLiquidity
      derivedCELO
      derivedCUSD
    }
    token1 {
      id
      symbol
      name
      totalLiquidity
      derivedCELO
      derivedCUSD
    }
    reserve0
    reserve1
    reserveUSD
    totalSupply
    trackedReserveCELO
    reserveCELO
    volumeUSD
    untrackedVolumeUSD
    token0Price
    token1Price
    createdAtTimestamp
  }
"""

USER_TRANSACTIONS = """
  query transactions($user: Bytes!) {
    mints(orderBy: timestamp, orderDirection: desc, where: { to: $user }) {
      id
      transaction {
        id
        timestamp
      }
      pair {
        id
        token0 {
          id
          symbol
        }
        token1 {
          id
          symbol
        }
      }
      to
      liquidity
      amount0
      amount1
      amountUSD
    }
    burns(orderBy: timestamp, orderDirection: desc, where: { sender: $user }) {
      id
      transaction {
        id
        timestamp
      }
      pair {
        id
        token0 {
          symbol
        }
        token1 {
          symbol
        }
      }
      sender
      to
      liquidity
      amount0
      amount1
      amountUSD
    }
    swaps(orderBy: timestamp, orderDirection: desc, where: { to: $user }) {
      id
      transaction {
        id
        timestamp
      }
      pair {
        token0 {
          symbol
        }
        token1 {
          symbol
        }
      }
      amount0In
      amount0Out
      amount1In
      amount1Out
      amountUSD
      to
    }
  }
"""

USER_HISTORY = """
  query snapshots($user: Bytes!, $skip: Int!, $first: Int!) {
    liquidityPositionSnapshots(first: $first, skip: $skip, where: { user: $user }) {
      timestamp
      reserveUSD
      liquidityTokenBalance
      liquidityTokenTotalSupply
      reserve0
      reserve1
      token0PriceUSD
      token1PriceUSD
      pair {
        id
        reserve0
        reserve1
        reserveUSD
        token0 {
          id
        }
        token1 {
          id
        }
      }
    }
  }
"""

USER_POSITIONS = """
  query liquidityPositions($user: Bytes!) {
    liquidityPositions(where: { user: $user }) {
      pair {
        id
        reserve0
        reserve1
        reserveUSD
        token0 {
          id
          symbol
          derivedCELO
          derivedCUSD
        }
        token1 {
          id
          symbol
          derivedCELO
          derivedCUSD
        }
        totalSupply
      }
      liquidityTokenBalance
    }
  }
"""

USER_MINTS_BURNS_PER_PAIR = """
  query events($user: Bytes!, $pair: Bytes!) {
    mints(where: { to: $user, pair: $pair }) {
      amountUSD
      amount0
      amount1
      timestamp
      pair {
        token0 {
          id
        }
        token1 {
          id
        }
      }
    }
    burns(where: { sender: $user, pair: $pair }) {
      amountUSD
      amount0
      amount1
      timestamp
      pair {
        token0 {
          id
        }
        token1 {
          id
        }
      }
    }
  }
"""

PAIR_DATA = PAIR_FIELDS + """
  query pairs($pairAddress: Bytes!) {
    pairs(where: { id: $pairAddress }) {
      ...PairFields
    }
  }
"""

NATIVE_PRICE = """
  query bundles {
    bundles(where: { id: "1" }) {
      id
      celoPrice
    }
  }
"""

PAIR_DAY_DATA_BULK = """
  query pairDayDatas($pairs: [Bytes!]!, $startTimestamp: Int!, $skip: Int!, $first: Int!) {
    pairDayDatas(
      first: $first
      skip: $skip
      orderBy: date
      orderDirection: asc
      where: { pairAddress_in: $pairs, date_gt: $startTimestamp }
    ) {
      id
      pairAddress
      date
      dailyVolumeToken0
      dailyVolumeToken1
      dailyVolumeUSD
      totalSupply
      reserveUSD
    }
  }
"""

GET_BLOCK = """
  query blocks($timestampFrom: Int!, $timestampTo: Int!) {
    blocks(
      first: 1
      orderBy: timestamp
      orderDirection: asc
      where: { timestamp_gte: $timestampFrom, timestamp_lt: $timestampTo }
    ) {
      id
      number
      timestamp
    }
  }
"""


def get_blocks(timestamps: Iterable[int], window_seconds: int = 600) -> str:
    """One aliased block lookup per timestamp over [t, t + window)"""
    fields = [
        "t%d: blocks(first: 1, orderBy: timestamp, orderDirection: asc, "
        "where: { timestamp_gte: %d, timestamp_lt: %d }) { number }"
        % (timestamp, timestamp, timestamp + window_seconds)
        for timestamp in timestamps
    ]
    return "query blocks {\n  %s\n}" % "\n  ".join(fields)


def share_value(pair_address: str, blocks: Sequence[Block]) -> str:
    """Pair state at each block height, aliased by the block's timestamp label"""
    fields: List[str] = []
    for block in blocks:
        fields.append(
            """t%d: pair(id: "%s", block: { number: %d }) {
    reserve0
    reserve1
    reserveUSD
    totalSupply
    token0 {
      derivedCUSD
    }
    token1 {
      derivedCUSD
    }
  }""" % (block.timestamp, pair_address.lower(), block.number)
        )
    return "query blocks {\n  %s\n}" % "\n  ".join(fields)

"""portal-flow: a chained mini-game session that ends in a generated certificate.

Coin Rush (tap challenge) -> Missions (choices) -> Portal Match (tic-tac-toe vs
an exact minimax engine). Coins go to a Redis-backed ledger as each stage ends.
"""

__version__ = "0.1.0"

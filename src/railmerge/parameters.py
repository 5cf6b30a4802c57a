"""Game table parameters for railmerge.

This module is the SINGLE SOURCE OF TRUTH for the static game tables.
Nothing here is read directly by the engine: ``default_config()`` in
``railmerge.models.config`` packs these constants into an immutable
``GameConfig`` which is passed explicitly to every component.

Table Categories:
- Bank and currency
- Valuation grid (stock market)
- Phases and trains
- Enterprises and the consolidation successor
- Per-player-count tables (certificate limit, starting capital)

Usage:
    from railmerge.parameters import BANK_CASH, MARKET
"""

# =============================================================================
# BANK AND CURRENCY
# =============================================================================

BANK_CASH = 12_000
"""Cash held by the bank at game start.

The game ends at the end of the current operating round once the bank
cannot pay (see GAME_END_CHECK).
"""

CURRENCY_FORMAT = "{}M"
"""Format string used for every monetary amount written to the game log."""

GAME_END_CHECK = "current_or"
"""When a broken bank ends the game: after the operating round in progress."""


# =============================================================================
# VALUATION GRID
# =============================================================================

MARKET = [
    ["", "", "", "", "132", "148", "166", "186", "208", "232", "258", "286", "316", "348", "382", "418"],
    ["", "", "98", "108", "120", "134", "150", "168", "188", "210", "234", "260", "288", "318", "350", "384"],
    ["82", "86", "92p", "100", "110", "122", "136", "152", "170", "190", "212", "236", "262", "290", "320"],
    ["78", "84p", "88p", "94", "102", "112", "124", "138", "154r", "172", "192", "214"],
    ["72", "80p", "86", "90", "96", "104", "114", "126", "140"],
    ["64", "74", "82", "88", "92", "98", "106"],
    ["54", "66", "76", "84", "90"],
]
"""Valuation grid rows, top (highest) to bottom.

Each cell is a price followed by optional type letters:
    p: par price may be set on this cell
    r: reserved par cell for the consolidation successor
    m: multiple purchases allowed in one action

Empty strings are holes in the grid.
"""

SELL_MOVEMENT = "down_block"
"""How a sale moves the valuation cell.

    down_block: one step down per sale transaction, whatever its size
    down_share: one step down per unit sold
"""

SELL_STEPS_PER_BLOCK = 1
"""Rows moved down per sale transaction under down_block."""


# =============================================================================
# PHASES AND TRAINS
# =============================================================================

CONSOLIDATION_EVENT = "consolidation"
"""Phase event name that arms the consolidation trigger."""

PHASES = [
    {"name": "1.1", "on": "2", "train_limit": {"minor": 2, "major": 4}, "tiles": ["yellow"], "operating_rounds": 1},
    {"name": "1.2", "on": "2+2", "train_limit": {"minor": 2, "major": 4}, "tiles": ["yellow"], "operating_rounds": 1},
    {"name": "2.1", "on": "3", "train_limit": {"minor": 2, "major": 4}, "tiles": ["yellow", "green"], "operating_rounds": 2},
    {"name": "2.2", "on": "3+3", "train_limit": {"minor": 2, "major": 4}, "tiles": ["yellow", "green"], "operating_rounds": 2},
    {
        "name": "2.3",
        "on": "4",
        "train_limit": {"successor": 4, "major": 3, "minor": 1},
        "tiles": ["yellow", "green"],
        "operating_rounds": 2,
        "events": [CONSOLIDATION_EVENT],
    },
    {"name": "2.4", "on": "4+4", "train_limit": {"successor": 4, "major": 3, "minor": 1}, "tiles": ["yellow", "green"], "operating_rounds": 2},
    {
        "name": "3.1",
        "on": "5",
        "train_limit": {"successor": 3, "major": 2},
        "tiles": ["yellow", "green"],
        "operating_rounds": 3,
        "events": ["close_companies"],
    },
    {"name": "3.2", "on": "5+5", "train_limit": {"successor": 3, "major": 2}, "tiles": ["yellow", "green", "brown"], "operating_rounds": 3},
    {"name": "3.3", "on": "6", "train_limit": {"successor": 3, "major": 2}, "tiles": ["yellow", "green", "brown"], "operating_rounds": 3},
    {"name": "3.4", "on": "6+6", "train_limit": {"successor": 3, "major": 2}, "tiles": ["yellow", "green", "brown"], "operating_rounds": 3},
]
"""Ordered phase list.

Each phase names the train tier that starts it, per-class train limits,
the unlocked tile colours, the number of operating rounds per cycle and the
events fired when the phase begins.
"""

TRAINS = [
    {"name": "2", "distance": 2, "price": 80, "rusts_on": "4", "num": 9},
    {"name": "2+2", "distance": 2, "price": 120, "rusts_on": "4+4", "num": 4},
    {"name": "3", "distance": 3, "price": 180, "rusts_on": "6", "num": 4},
    {"name": "3+3", "distance": 3, "price": 270, "rusts_on": "6+6", "num": 3},
    {"name": "4", "distance": 4, "price": 360, "num": 3},
    {"name": "4+4", "distance": 4, "price": 440, "num": 1},
    {"name": "5", "distance": 5, "price": 500, "num": 2},
    {"name": "5+5", "distance": 5, "price": 600, "num": 1},
    {"name": "6", "distance": 6, "price": 600, "num": 2},
    {"name": "6+6", "distance": 6, "price": 720, "num": 4},
]
"""Train roster: tier name, reach, price, rusting tier and count."""


# =============================================================================
# ENTERPRISES
# =============================================================================

PAR_PRICES = {
    "BY": 92,
    "SX": 88,
    "BA": 84,
    "WT": 84,
    "HE": 84,
    "MS": 80,
    "OL": 80,
}
"""Fixed par price per major enterprise, applied at setup."""

MAJOR_SHARES = [20, 10, 10, 10, 10, 10, 10, 10, 10]
"""Certificate layout of a major: controlling certificate first."""

MINOR_SHARES = [100]
"""Minor enterprises issue a single controlling certificate."""

PREDECESSORS = ["P1", "P2", "P3", "P4", "P5", "P6"]
"""Enterprises folded into the successor, in merge priority order."""

MINOR_HOMES = {
    "P1": "Nuremberg",
    "P2": "Berlin",
    "P3": "Hamburg",
    "P4": "Dortmund",
    "P5": "Cologne",
    "P6": "Berlin",
}
"""Home location of each predecessor's first token."""

SUCCESSOR_ID = "PR"
SUCCESSOR_NAME = "Preussische Eisenbahn"

SUCCESSOR_SHARES = [10, 10, 10, 10, 10, 10, 10, 10, 10, 5, 5]
"""Successor certificate layout: 10% controlling, eight 10% double units, two 5%.

Predecessor controlling certificates exchange into 10% units and all other
predecessor certificates into 5% units, so the pool must cover both.
"""

SUCCESSOR_STARTING_CASH = 400
"""Cash the bank pays the successor when it forms."""

SUCCESSOR_STARTING_TRAIN = "4"
"""Train tier handed to the successor when it forms."""

SUCCESSOR_TOKEN_PRICE = 100
"""Price of the fresh tokens created for the successor during migration."""


# =============================================================================
# PER-PLAYER-COUNT TABLES
# =============================================================================

CERT_LIMIT = {3: 19, 4: 15, 5: 12, 6: 11, 7: 9}
"""Maximum certificates a party may hold, keyed by party count."""

STARTING_CASH = {3: 600, 4: 475, 5: 390, 6: 340, 7: 310}
"""Starting capital per party, keyed by party count."""

# src/common/constants.py

import os

MAGIC_COOKIE = 0x7C0DECA5

# Frame header: cookie(4) type(1) body_len(2)
HEADER_LEN = 4 + 1 + 2   # 7
MAX_BODY_LEN = 0xFFFF

# Client -> server message types
TYPE_JOIN = 0x10
TYPE_PLAY_CARD = 0x11
TYPE_REQUEST_TRUCO = 0x12
TYPE_RESPOND_TRUCO = 0x13

# Server -> client message types
TYPE_WAITING = 0x20
TYPE_HAND_DEALT = 0x21
TYPE_CARD_PLAYED = 0x22
TYPE_TRICK_RESULT = 0x23
TYPE_HAND_COMPLETE = 0x24
TYPE_CHANGE_TURN = 0x25
TYPE_TRUCO_REQUESTED = 0x26
TYPE_TRUCO_ACCEPTED = 0x27
TYPE_TRUCO_RAISED = 0x28
TYPE_TRUCO_QUIT = 0x29
TYPE_OPPONENT_LEFT = 0x2A

# Truco responses
RESPONSE_ACCEPT = "accept"
RESPONSE_RAISE = "raise"
RESPONSE_QUIT = "quit"

RESPONSE_TO_CODE = {RESPONSE_ACCEPT: 0, RESPONSE_RAISE: 1, RESPONSE_QUIT: 2}
CODE_TO_RESPONSE = {v: k for k, v in RESPONSE_TO_CODE.items()}

# Cards: 4 suits x 10 ranks (no 8/9/10), weakest rank first
SUITS = ["♠", "♥", "♣", "♦"]
RANKS = ["4", "5", "6", "7", "Q", "J", "K", "A", "2", "3"]
HAND_SIZE = 3

SUIT_TO_CODE = {s: i for i, s in enumerate(SUITS)}
CODE_TO_SUIT = {v: k for k, v in SUIT_TO_CODE.items()}
RANK_TO_CODE = {r: i for i, r in enumerate(RANKS)}
CODE_TO_RANK = {v: k for k, v in RANK_TO_CODE.items()}

# Stake values a hand can be played for
BASE_HAND_VALUE = 1
STAKE_LADDER = (0, 3, 6, 9, 12)
MAX_STAKE = STAKE_LADDER[-1]

# Server settings (env overridable)
SERVER_HOST = os.getenv("TRUCO_HOST", "")
SERVER_PORT = int(os.getenv("TRUCO_PORT", "3001"))
NEXT_HAND_DELAY = float(os.getenv("NEXT_HAND_DELAY", "2.0"))
# Fixed shuffle seed for reproducible games (unset = fresh randomness)
DECK_SEED = int(os.environ["TRUCO_SEED"]) if os.getenv("TRUCO_SEED") else None

"""Secret word list for the word-guessing game."""

from __future__ import annotations

import random
from typing import Optional, Tuple

_RAW_WORDS = (
	# fixtures and plumbing
	"FLUSH", "WIPES", "BIDET", "STOOL", "BOWEL",
	"POTTY", "SQUAT", "PLUMB", "WATER", "PAPER",
	"CLEAN", "SMELL", "SPRAY", "DRAIN", "FLOAT",
	"ROYAL", "WASTE", "SEWER", "PIPES", "VALVE",
	"BASIN", "FECAL", "URINE", "POOPS", "POOHS",
	"CRAPS", "DUMPS", "TURDS", "DOOKS", "LOAFS",
	"SINKS", "TANKS", "SEATS", "LATCH", "LEVER",
	"CHAIN", "KNOBS", "HINGE", "LOCKS", "DOORS",
	"STALL", "WALLS", "TILES", "GROUT", "CAULK",
	"DRIPS", "LEAKS", "CLOGS", "BACKS", "FLOWS",
	"SWIRL", "WHIRL", "SPINS", "DROPS", "FALLS",
	"ROLLS", "SHEET", "CLOTH", "BRUSH",
	# activities
	"GOING", "DOING", "VISIT", "BREAK", "RELAX",
	"EMPTY", "PURGE", "EXPEL", "GRUNT",
	"PINCH", "PRESS", "SHITS", "FORCE",
	"QUIET", "PEACE", "ALONE", "SPACE",
	"READS", "PHONE", "GAMES", "TEXTS", "WAITS",
	"HURRY", "QUICK", "RUSHS", "TARDY", "LATER",
	"STINK", "ODORS", "SCENT", "WHIFF",
	"FRESH", "MISTS", "VAPOR", "STEAM",
	# cleaning
	"SCRUB", "MOPUP", "RINSE", "SHINE",
	"GLEAM", "GLOSS", "SHEEN", "SLICK", "SLIME",
	"GRIME", "FILTH", "DIRTY", "MUCKY", "GRIMY",
	"STAIN", "MARKS", "SPOTS", "RINGS", "LINES",
	"MOLDS", "FUNGI", "GERMS", "VIRUS", "BACTS",
	"LYSOL", "SOAPY", "SUDSY", "SWIPE", "SWEEP",
	"FOAMS", "BUBBL", "FROTH", "SWISH",
	# parts and types
	"BOWLS", "BASES", "BENDS", "TRAPS",
	"FLAPS", "PEDAL", "TOUCH", "SENSE",
	"ROUND", "JOHNS", "HEADS",
	"ROOMS", "CABIN", "VENTS",
	# paper and hygiene
	"PLUSH", "THICK", "ROUGH",
	"FOLDS", "MOIST", "WETTY", "DRYER", "TOWEL",
	"SOAPS", "HANDS", "PALMS", "NAILS",
	# water
	"FLOWS", "DUCTS",
	"MAINS", "LINES", "ROUTE",
	"PUMPS", "POWER", "BOOST",
	"GATES", "STOPS", "BLOCK", "CLOGS",
	"DRIPS", "DROPS", "SPILL", "FLOOD",
	"POOLS", "SPINS", "TWIST",
	"SOUND", "NOISE",
)

# de-duplicated, first occurrence wins
WORDS: Tuple[str, ...] = tuple(dict.fromkeys(_RAW_WORDS))


def pick_word(rng: Optional[random.Random] = None) -> str:
	return (rng or random).choice(WORDS)

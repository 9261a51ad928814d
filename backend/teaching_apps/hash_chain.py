"""
Hash Chain Simulator
====================

In-memory model behind the blockchain teaching demo. A chain is a short,
fixed-order list of blocks; editing one block's data re-links and re-hashes
every block after it and marks the tampered suffix invalid.

Two hash flavours are used:

- the *mined* hash, computed once at construction, always starts with "0000";
- the *untethered* hash, computed after tampering, never starts with "0000".

Neither is cryptographic. The fixed prefix is what lets the page tell a
freshly mined block from one recomputed after an edit.
"""

from __future__ import annotations

import time
from typing import Iterator, List, Optional, Sequence

from pydantic import BaseModel


GENESIS_PREVIOUS_HASH = "0"
MINED_PREFIX = "0000"
TAMPERED_PREFIX = "abcd"
DEFAULT_CHAIN_SIZE = 5

DEFAULT_PAYLOADS: List[str] = [
	"Payment 1: £200",
	"Payment 2: £59",
	"Payment 3: £309",
	"Payment 4: £231",
	"Payment 5: £30",
]


class BlockIndexOutOfRange(IndexError):
	def __init__(self, index: int, size: int) -> None:
		super().__init__(f"block index {index} is out of range for a chain of {size} blocks")
		self.index = index
		self.size = size


class Block(BaseModel):
	id: int
	created_at: int  # epoch milliseconds, hash input, never changes
	last_modified_at: int
	data: str
	previous_hash: str
	hash: str = ""
	is_valid: bool = True
	original_data: str = ""
	original_previous_hash: str = ""
	original_hash: str = ""
	original_timestamp: int = 0

	@property
	def data_is_original(self) -> bool:
		return self.data == self.original_data

	@property
	def link_is_original(self) -> bool:
		return self.previous_hash == self.original_previous_hash

	def hash_input(self) -> str:
		return f"{self.id}{self.created_at}{self.data}{self.previous_hash}"


class Chain(BaseModel):
	blocks: List[Block]

	def __len__(self) -> int:
		return len(self.blocks)

	@property
	def is_compromised(self) -> bool:
		return any(not b.is_valid for b in self.blocks)

	def snapshot(self) -> List[dict]:
		"""Render-ready view of every block, including its display colour."""
		out: List[dict] = []
		for block in self.blocks:
			row = block.model_dump()
			row["genesis"] = block.id == 1
			row["colour"] = "green" if block.is_valid else "red"
			out.append(row)
		return out


def default_payloads() -> List[str]:
	return list(DEFAULT_PAYLOADS)


def _now_ms() -> int:
	return int(time.time() * 1000)


def _code_units(text: str) -> Iterator[int]:
	# Count characters the way a browser string does (UTF-16 code units)
	raw = text.encode("utf-16-le", "surrogatepass")
	for i in range(0, len(raw), 2):
		yield raw[i] | (raw[i + 1] << 8)


def rolling_hash(text: str) -> int:
	"""Classic ``h = h * 31 + c`` string hash, wrapped to a signed 32-bit int."""
	h = 0
	for unit in _code_units(text):
		h = (h * 31 + unit) & 0xFFFFFFFF
	if h >= 0x80000000:
		h -= 0x100000000
	return h


def _hex8(value: int) -> str:
	return format(abs(value), "x").zfill(8)


def mined_hash(block: Block) -> str:
	return MINED_PREFIX + _hex8(rolling_hash(block.hash_input()))


def untethered_hash(block: Block) -> str:
	first = _hex8(rolling_hash(block.hash_input()))
	second = _hex8(rolling_hash(first))
	combined = (first + second)[:12]
	if combined.startswith(MINED_PREFIX):
		combined = TAMPERED_PREFIX + combined[4:]
	return combined


def create_chain(payloads: Sequence[str] = (), size: int = DEFAULT_CHAIN_SIZE, *, now: Optional[int] = None) -> Chain:
	"""Build a fully valid chain of ``size`` mined blocks.

	Positions without a (non-empty) payload get ``"Block #i data"``. When
	``now`` is given every block shares that creation time, which makes two
	chains built from the same payloads identical.
	"""
	if isinstance(size, bool) or not isinstance(size, int) or size < 1:
		raise ValueError("chain size must be a positive integer")
	blocks: List[Block] = []
	for position in range(1, size + 1):
		created = now if now is not None else _now_ms()
		payload = payloads[position - 1] if position - 1 < len(payloads) else None
		block = Block(
			id=position,
			created_at=created,
			last_modified_at=created,
			data=payload or f"Block #{position} data",
			previous_hash=blocks[-1].hash if blocks else GENESIS_PREVIOUS_HASH,
		)
		block.hash = mined_hash(block)
		block.original_data = block.data
		block.original_hash = block.hash
		block.original_previous_hash = block.previous_hash
		block.original_timestamp = block.created_at
		blocks.append(block)
	return Chain(blocks=blocks)


def _propagate(chain: Chain, start: int) -> None:
	blocks = chain.blocks
	for k in range(start, len(blocks)):
		block = blocks[k]
		if k > 0:
			block.previous_hash = blocks[k - 1].hash
		if block.data_is_original and block.link_is_original:
			# Upstream repair: snap back to the mined values
			block.hash = block.original_hash
			block.last_modified_at = block.original_timestamp
		else:
			block.hash = untethered_hash(block)


def _revalidate(chain: Chain) -> None:
	blocks = chain.blocks
	blocks[0].is_valid = blocks[0].data_is_original
	for k in range(1, len(blocks)):
		block = blocks[k]
		block.is_valid = blocks[k - 1].is_valid and block.data_is_original and block.link_is_original


def edit_block(chain: Chain, index: int, new_data: str, *, now: Optional[int] = None) -> Chain:
	"""Replace one block's data and re-derive everything downstream of it.

	Mutates ``chain`` in place and returns it. ``index`` is zero-based;
	negative or too-large indices raise :class:`BlockIndexOutOfRange`.
	"""
	size = len(chain.blocks)
	if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < size:
		raise BlockIndexOutOfRange(index, size)
	target = chain.blocks[index]
	if new_data == target.data:
		return chain
	target.data = new_data
	if target.data_is_original:
		target.last_modified_at = target.created_at
	else:
		target.last_modified_at = now if now is not None else _now_ms()
	_propagate(chain, index)
	_revalidate(chain)
	return chain

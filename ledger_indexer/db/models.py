from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, BigInteger, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# ledgerheaders
# ---------------------------


class LedgerHeaderModel(Base):
    __tablename__ = "ledgerheaders"

    ledgerhash: Mapped[str] = mapped_column(String(64), primary_key=True)
    prevhash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ledgerseq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True, index=True)
    # Unix seconds
    closetime: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Decoded header fields beyond the columns above (protocol_version,
    # total_coins, fee_pool, base_fee, base_reserve, max_tx_set_size).
    data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)


# ---------------------------
# txhistory
# ---------------------------


class TxHistoryModel(Base):
    __tablename__ = "txhistory"

    ledgerseq: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    txindex: Mapped[int] = mapped_column(Integer, primary_key=True)
    txid: Mapped[str] = mapped_column(String(64), nullable=False)
    txbody: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    txresult: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    txmeta: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)


# ---------------------------
# txfeehistory
# ---------------------------


class TxFeeHistoryModel(Base):
    __tablename__ = "txfeehistory"

    ledgerseq: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    txindex: Mapped[int] = mapped_column(Integer, primary_key=True)
    txid: Mapped[str] = mapped_column(String(64), nullable=False)
    txchanges: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)


__all__ = ["Base", "LedgerHeaderModel", "TxFeeHistoryModel", "TxHistoryModel"]

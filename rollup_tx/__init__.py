"""
Canonical transaction envelope for a layer-2 rollup ledger.
"""
from rollup_tx.primitives import FeeInfo, TokenLike, TxFeeTypes, TxHash
from rollup_tx.signature import EthSignData, TxEthSignature, TxSignature
from rollup_tx.variants import ChangePubKey, Close, Transfer, TxVariant, Withdraw
from rollup_tx.transaction import (
    SignedTransaction,
    ValidatedTransaction,
    ValidationError,
    get_fee_info,
    tx_hash,
)

__all__ = [
    'FeeInfo', 'TokenLike', 'TxFeeTypes', 'TxHash',
    'EthSignData', 'TxEthSignature', 'TxSignature',
    'TxVariant', 'Transfer', 'Withdraw', 'Close', 'ChangePubKey',
    'SignedTransaction', 'ValidatedTransaction', 'ValidationError',
    'get_fee_info', 'tx_hash',
]

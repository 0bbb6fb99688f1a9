from __future__ import annotations

import logging
from collections.abc import Sequence

from .classifiers import (
    AirdropClassifier,
    BridgeClassifier,
    Classifier,
    FeeOnlyClassifier,
    NftMintClassifier,
    PrivacyCashClassifier,
    SolanaPayClassifier,
    StakeDepositClassifier,
    StakeRewardClassifier,
    StakeWithdrawClassifier,
    SwapClassifier,
    TransferClassifier,
    UnknownClassifier,
)
from .types import ClassificationResult, Leg, RawTransaction

logger = logging.getLogger(__name__)

DEFAULT_CLASSIFIERS: tuple[Classifier, ...] = (
    SolanaPayClassifier(),
    BridgeClassifier(),
    PrivacyCashClassifier(),
    NftMintClassifier(),
    StakeDepositClassifier(),
    StakeWithdrawClassifier(),
    SwapClassifier(),
    StakeRewardClassifier(),
    AirdropClassifier(),
    FeeOnlyClassifier(),
    TransferClassifier(),
    UnknownClassifier(),
)


class ClassificationPipeline:
    """Runs classifiers in order; the first one that recognises the legs wins."""

    def __init__(self, classifiers: Sequence[Classifier] | None = None) -> None:
        self.classifiers: tuple[Classifier, ...] = (
            DEFAULT_CLASSIFIERS if classifiers is None else tuple(classifiers)
        )
        if not self.classifiers:
            raise ValueError("ClassificationPipeline needs at least one classifier")

    @property
    def names(self) -> list[str]:
        return [classifier.name for classifier in self.classifiers]

    def classify(
        self, legs: list[Leg], tx: RawTransaction, wallet: str | None = None
    ) -> ClassificationResult:
        for classifier in self.classifiers:
            try:
                result = classifier.classify(legs, tx, wallet)
            except Exception:
                logger.exception("Classifier %s failed on %s", classifier.name, tx.signature)
                continue
            if result is not None:
                logger.debug("%s classified as %s by %s", tx.signature, result.primary_type, classifier.name)
                return result
        return UnknownClassifier().classify(legs, tx, wallet)  # type: ignore[return-value]


_default_pipeline = ClassificationPipeline()


def classify_transaction(
    legs: list[Leg], tx: RawTransaction, wallet: str | None = None
) -> ClassificationResult:
    return _default_pipeline.classify(legs, tx, wallet)

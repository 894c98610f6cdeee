'''
Result container base class for cointrestrict.

ModelResult provides the serialization and display plumbing shared by the
estimation results: conversion to dict and JSON, pickling, and a plain-text
summary. Model-specific result classes extend it with their own fields and a
richer summary.
'''

import json
import pickle
from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd

from .types import ResultDict


def _jsonable(value: Any) -> Any:
    """Convert numpy and pandas values into JSON-friendly Python objects."""
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, (pd.DataFrame, pd.Series)):
        return value.to_dict()
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass
class ModelResult:
    """Fields and serialization shared by estimation results.

    Attributes:
        model_name: Label of the estimator, used as the summary title
        creation_time: When the estimation finished
        metadata: Free-form key/value pairs listed under the summary title
    """

    model_name: str
    creation_time: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> ResultDict:
        """Fields as JSON-friendly values: arrays become nested lists."""
        return {key: _jsonable(value) for key, value in asdict(self).items()}

    def to_json(self, path: Optional[Union[str, Path]] = None, **kwargs: Any) -> Optional[str]:
        """
        Serialize to_dict() as JSON.

        Args:
            path: File to write; when None the JSON text is returned instead
            **kwargs: Passed on to json.dumps

        Returns:
            The JSON text when path is None, otherwise None
        """
        text = json.dumps(self.to_dict(), **kwargs)
        if path is None:
            return text
        Path(path).write_text(text)
        return None

    def to_pickle(self, path: Union[str, Path]) -> None:
        """Pickle the result to path."""
        with open(path, 'wb') as f:
            pickle.dump(self, f)

    @classmethod
    def from_pickle(cls, path: Union[str, Path]) -> "ModelResult":
        """
        Load a result written by to_pickle.

        Raises:
            TypeError: If the file holds something other than an instance of cls
        """
        with open(path, "rb") as f:
            result = pickle.load(f)
        if not isinstance(result, cls):
            raise TypeError(f"{path} holds a {type(result).__name__}, expected {cls.__name__}")
        return result

    def summary(self) -> str:
        """Title block: model name underlined, then any metadata entries."""
        title = f"Model: {self.model_name}"
        lines = [title, "=" * len(title), ""]
        if self.metadata:
            lines.append("Metadata:")
            lines.extend(f"  {key}: {value}" for key, value in self.metadata.items())
            lines.append("")
        return "\n".join(lines) + "\n"

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model_name='{self.model_name}')"

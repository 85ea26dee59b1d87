"""JSON output for consensus results."""

import json
import numpy as np
from pathlib import Path
from typing import Any, Dict

from consensus.errors import Status
from consensus.result import ConsensusResult


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    return value


def result_to_dict(result: ConsensusResult, include_residuals: bool = False) -> Dict:
    """Convert a ConsensusResult into plain JSON types."""
    output = {
        "status": result.status.value,
        "message": result.message,
        "hypothesis": _to_jsonable(result.hypothesis),
        "consensus_set": _to_jsonable(result.consensus_set),
        "num_inliers": result.num_inliers,
        "iterations_used": result.iterations_used,
        "elapsed_ms": round(result.elapsed_ms, 3),
        "degenerate_samples": result.degenerate_samples,
        "group_inliers": _to_jsonable(result.group_inliers),
        "starved_groups": [str(g) for g in result.starved_groups],
    }
    if include_residuals and result.residuals is not None:
        output["residuals"] = _to_jsonable(result.residuals)
    return output


def result_from_dict(data: Dict) -> ConsensusResult:
    """Rebuild a ConsensusResult from the output of result_to_dict."""
    hypothesis = data.get("hypothesis")
    residuals = data.get("residuals")
    return ConsensusResult(
        hypothesis=np.asarray(hypothesis, dtype=np.float64) if hypothesis is not None else None,
        consensus_set=np.asarray(data.get("consensus_set", []), dtype=np.intp),
        iterations_used=int(data.get("iterations_used", 0)),
        status=Status(data["status"]),
        residuals=np.asarray(residuals, dtype=np.float64) if residuals is not None else None,
        message=data.get("message", ""),
        elapsed_ms=float(data.get("elapsed_ms", 0.0)),
        degenerate_samples=int(data.get("degenerate_samples", 0)),
        group_inliers=dict(data.get("group_inliers", {})),
        starved_groups=list(data.get("starved_groups", [])),
    )


class JSONWriter:
    """Write consensus results to JSON."""

    @staticmethod
    def save_results(output_dict: Dict, output_path: str, indent: int = 2):
        """Save results to JSON file."""
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            json.dump(_to_jsonable(output_dict), f, indent=indent)

    @staticmethod
    def load_results(input_path: str) -> Dict:
        """Load results from JSON file."""
        with open(input_path, 'r') as f:
            return json.load(f)

    @classmethod
    def save_result(cls, result: ConsensusResult, output_path: str,
                    include_residuals: bool = False):
        """Save a single ConsensusResult."""
        cls.save_results(result_to_dict(result, include_residuals), output_path)

    @classmethod
    def load_result(cls, input_path: str) -> ConsensusResult:
        """Load a ConsensusResult written by save_result."""
        return result_from_dict(cls.load_results(input_path))

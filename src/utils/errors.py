import pandas as pd


class ZonalDisastersError(Exception):
    """Base class for per-item failures collected during a pipeline run."""

    item = None
    reason = None


class AggregationError(ZonalDisastersError):
    """A (polygon, layer) group whose cells carry no usable coverage."""

    def __init__(self, polygon_id, layer_id, reason):
        self.polygon_id = polygon_id
        self.layer_id = layer_id
        self.item = f"{polygon_id}/{layer_id}"
        self.reason = reason
        super().__init__(
            f"Cannot aggregate polygon {polygon_id}, layer {layer_id}: "
            f"{reason}"
        )


class MatchError(ZonalDisastersError):
    """A region that cannot take part in containment testing."""

    def __init__(self, region_id, reason):
        self.region_id = region_id
        self.item = str(region_id)
        self.reason = reason
        super().__init__(f"Skipping region {region_id}: {reason}")


def skipped_table(skipped):
    """Tabulate collected errors for reporting."""
    return pd.DataFrame(
        [
            {
                "error": type(err).__name__,
                "item": err.item,
                "reason": err.reason,
            }
            for err in skipped
        ],
        columns=["error", "item", "reason"],
    )

"""fastml：一行代码完成多模型训练、调参、评估与汇总。

```python
from fastml import fastml, summary

result = fastml(df, label="target", algorithms=["random_forest", "xgboost"])
summary(result)
```
"""

from .evaluation.evaluate import evaluate_models
from .evaluation.summary import format_summary, summary
from .models.registry import (
    available_algorithms,
    define_model_spec,
    get_default_params,
    get_default_tune_params,
)
from .models.training import ModelResult, train_models
from .pipelines.fastml import FastMLModel, fastml

__version__ = "0.1.0"

__all__ = [
    "fastml",
    "FastMLModel",
    "ModelResult",
    "train_models",
    "evaluate_models",
    "summary",
    "format_summary",
    "available_algorithms",
    "define_model_spec",
    "get_default_params",
    "get_default_tune_params",
]

"""模型模块入口。

为外部调用提供统一的导入路径：

```python
from fastml.models import train_models, define_model_spec
```

也支持直接访问算法注册表与超参数工具。
"""

from .params import ParamDef, build_grid, extract_parameter_set, finalize, update_params
from .registry import (
    ALGORITHMS,
    AlgorithmInfo,
    ModelSpec,
    available_algorithms,
    define_model_spec,
    get_default_params,
    get_default_tune_params,
)
from .training import ModelResult, train_models

__all__ = [
    "ALGORITHMS",
    "AlgorithmInfo",
    "ModelSpec",
    "ModelResult",
    "ParamDef",
    "available_algorithms",
    "build_grid",
    "define_model_spec",
    "extract_parameter_set",
    "finalize",
    "get_default_params",
    "get_default_tune_params",
    "train_models",
    "update_params",
]

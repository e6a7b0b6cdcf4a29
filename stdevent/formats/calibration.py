# -*- coding: utf-8 -*-
"""
刻度函数 - 从配置中的公式字符串构建的一维函数

公式语法与常见的 TF1 公式兼容：
- 变量 ``x``，数值常量，``pi`` / ``e``
- 运算符 ``+ - * / ** ^ %`` 以及比较运算（结果可参与乘法）
- 参数 ``[0]``, ``[1]`` ...（默认 0.0，可在构造时给定）
- 函数 exp, log, log10, sqrt, abs, pow, sin, cos, tan, atan, sinh, cosh, tanh,
  min, max 及其首字母大写形式（可带 ``TMath::`` 前缀，如 ``TMath::Sqrt``）
- 多项式简写 ``polN``，等价于 ``[0] + [1]*x + ... + [N]*x^N``

公式在构造时解析并校验一次，之后直接在语法树上用 numpy ufunc 求值，
比较运算按元素得到 0.0 / 1.0。
标量输入返回 float，numpy 数组输入按元素求值。

Examples:
    >>> f = CalibrationFunction("calibration_px12", "2*x + 1", 0.0, 16384.0)
    >>> f(10)
    21.0
    >>> g = CalibrationFunction("gain", "pol1", 0.0, 100.0, parameters=[0.5, 3.0])
    >>> g(2)
    6.5
"""

import ast
import re
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple, Union

import numpy as np

from stdevent.core.exceptions import CalibrationError
from stdevent.core.foundation.utils import exporter

export, __all__ = exporter()

_FUNCTIONS: Dict[str, Any] = {
    "exp": np.exp,
    "log": np.log,
    "log10": np.log10,
    "sqrt": np.sqrt,
    "abs": np.abs,
    "fabs": np.abs,
    "pow": np.power,
    "sin": np.sin,
    "cos": np.cos,
    "tan": np.tan,
    "atan": np.arctan,
    "sinh": np.sinh,
    "cosh": np.cosh,
    "tanh": np.tanh,
    "min": np.minimum,
    "max": np.maximum,
}

# TMath 风格的大写名称 (TMath::Sqrt, TMath::Power ...)
_FUNCTIONS.update({name.capitalize(): fn for name, fn in list(_FUNCTIONS.items())})
_FUNCTIONS.update({"Power": np.power, "ATan": np.arctan, "Abs": np.abs})

_CONSTANTS: Dict[str, float] = {
    "pi": float(np.pi),
    "e": float(np.e),
}

# 运算符 -> numpy ufunc，全部在 float64 上计算
_BINARY_OPS: Dict[type, Any] = {
    ast.Add: np.add,
    ast.Sub: np.subtract,
    ast.Mult: np.multiply,
    ast.Div: np.true_divide,
    ast.Mod: np.mod,
    ast.Pow: np.power,
}

_UNARY_OPS: Dict[type, Any] = {
    ast.USub: np.negative,
    ast.UAdd: np.positive,
}

_COMPARE_OPS: Dict[type, Any] = {
    ast.Lt: np.less,
    ast.LtE: np.less_equal,
    ast.Gt: np.greater,
    ast.GtE: np.greater_equal,
    ast.Eq: np.equal,
    ast.NotEq: np.not_equal,
}

_ALLOWED_NODES = (
    ast.Expression,
    ast.BinOp,
    ast.UnaryOp,
    ast.Compare,
    ast.Call,
    ast.Name,
    ast.Load,
    ast.Constant,
) + tuple(_BINARY_OPS) + tuple(_UNARY_OPS) + tuple(_COMPARE_OPS)

_PARAM_RE = re.compile(r"\[\s*(\d+)\s*\]")
_POL_RE = re.compile(r"\bpol(\d+)\b")
_PARAM_PREFIX = "__p"


def _expand_polynomial(match: "re.Match") -> str:
    degree = int(match.group(1))
    terms = ["[0]"] + [f"[{i}]*x**{i}" if i > 1 else "[1]*x" for i in range(1, degree + 1)]
    return "(" + " + ".join(terms) + ")"


def _preprocess(formula: str) -> str:
    text = formula.strip().replace("TMath::", "")
    text = _POL_RE.sub(_expand_polynomial, text)
    text = text.replace("^", "**")
    return _PARAM_RE.sub(lambda m: f"{_PARAM_PREFIX}{m.group(1)}", text)


def _validate(tree: ast.AST, formula: str) -> int:
    """检查语法树只包含允许的节点，返回使用到的最大参数编号 + 1"""
    n_params = 0
    callees = {id(node.func) for node in ast.walk(tree) if isinstance(node, ast.Call)}
    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise CalibrationError(
                f"Unsupported syntax {type(node).__name__} in formula {formula!r}", formula=formula
            )
        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
                raise CalibrationError(f"Unsupported constant {node.value!r} in formula {formula!r}", formula=formula)
            try:
                float(node.value)
            except OverflowError:
                raise CalibrationError(f"Constant out of range in formula {formula!r}", formula=formula) from None
        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in _FUNCTIONS or node.keywords:
                raise CalibrationError(f"Unsupported function call in formula {formula!r}", formula=formula)
            # 多余的位置参数会被 ufunc 当作 out
            expected = _FUNCTIONS[node.func.id].nin
            if len(node.args) != expected:
                raise CalibrationError(
                    f"{node.func.id}() takes {expected} argument(s) in formula {formula!r}", formula=formula
                )
        if isinstance(node, ast.Name):
            name = node.id
            if id(node) in callees:
                continue
            if name.startswith(_PARAM_PREFIX):
                n_params = max(n_params, int(name[len(_PARAM_PREFIX):]) + 1)
            elif name != "x" and name not in _CONSTANTS:
                raise CalibrationError(f"Unknown name {name!r} in formula {formula!r}", formula=formula)
    return n_params


def _evaluate(node: ast.AST, names: Dict[str, Any]) -> Any:
    """在已校验的语法树上求值"""
    if isinstance(node, ast.Expression):
        return _evaluate(node.body, names)
    if isinstance(node, ast.Constant):
        return np.float64(node.value)
    if isinstance(node, ast.Name):
        return names[node.id]
    if isinstance(node, ast.BinOp):
        return _BINARY_OPS[type(node.op)](_evaluate(node.left, names), _evaluate(node.right, names))
    if isinstance(node, ast.UnaryOp):
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand, names))
    if isinstance(node, ast.Compare):
        # a < b < c 按元素展开为 (a < b) & (b < c)
        left = _evaluate(node.left, names)
        result = np.True_
        for op, comparator in zip(node.ops, node.comparators):
            right = _evaluate(comparator, names)
            result = np.logical_and(result, _COMPARE_OPS[type(op)](left, right))
            left = right
        return result.astype(np.float64)
    if isinstance(node, ast.Call):
        return _FUNCTIONS[node.func.id](*(_evaluate(arg, names) for arg in node.args))
    raise TypeError(f"unexpected node {type(node).__name__}")


@export
class CalibrationFunction:
    """Named one-dimensional calibration function with a fixed domain."""

    def __init__(
        self,
        name: str,
        formula: str,
        range_min: float,
        range_max: float,
        parameters: Optional[Iterable[float]] = None,
    ):
        if not isinstance(formula, str) or not formula.strip():
            raise CalibrationError(f"Empty calibration formula for {name}", formula=formula, key=name)
        if range_min > range_max:
            raise CalibrationError(
                f"Calibration range for {name} is inverted: [{range_min}, {range_max}]",
                formula=formula,
                key=name,
            )

        self.name = name
        self.formula = formula
        self.range_min = float(range_min)
        self.range_max = float(range_max)

        source = _preprocess(formula)
        try:
            tree = ast.parse(source, mode="eval")
        except SyntaxError as exc:
            raise CalibrationError(f"Cannot parse formula {formula!r}: {exc.msg}", formula=formula, key=name) from exc
        try:
            self.n_parameters = _validate(tree, formula)
        except CalibrationError as exc:
            exc.key = name
            raise

        given = [float(p) for p in (parameters or ())]
        if len(given) > self.n_parameters:
            raise CalibrationError(
                f"Formula {formula!r} uses {self.n_parameters} parameter(s), {len(given)} given",
                formula=formula,
                key=name,
            )
        # 未给定的参数默认为 0
        self.parameters: Tuple[float, ...] = tuple(given + [0.0] * (self.n_parameters - len(given)))

        self._tree = tree
        self._names: Dict[str, Any] = dict(_CONSTANTS)
        self._names.update({f"{_PARAM_PREFIX}{i}": p for i, p in enumerate(self.parameters)})

        # 试算一次，函数参数个数错误等在构造时暴露
        try:
            self.eval(0.0)
        except (TypeError, ValueError) as exc:
            raise CalibrationError(f"Cannot evaluate formula {formula!r}: {exc}", formula=formula, key=name) from exc

    def __repr__(self) -> str:
        return (
            f"CalibrationFunction({self.name!r}, {self.formula!r}, "
            f"range=[{self.range_min}, {self.range_max}])"
        )

    def __call__(self, x: Union[float, Sequence[float], np.ndarray]) -> Union[float, np.ndarray]:
        return self.eval(x)

    def eval(self, x: Union[float, Sequence[float], np.ndarray]) -> Union[float, np.ndarray]:
        """在 ``x`` 处求值（不限制在定义域内）"""
        scalar = np.ndim(x) == 0
        values = np.asarray(x, dtype=np.float64)
        names = dict(self._names)
        names["x"] = values
        with np.errstate(all="ignore"):
            result = _evaluate(self._tree, names)
        if scalar:
            return float(result)
        return np.broadcast_to(np.asarray(result, dtype=np.float64), values.shape).copy()

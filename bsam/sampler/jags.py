"""
JAGS (Just Another Gibbs Sampler) run as an external process.

Each invocation gets its own temporary working directory holding the
data and per-chain initial values in R dump format, a JAGS script, and
the CODA output JAGS writes back. The directory is removed when the run
finishes, fails or times out. JAGS runs in its own session so a timeout
kills its whole process group.

Citation: Plummer, M. (2003). JAGS: A program for analysis of Bayesian
          graphical models using Gibbs sampling. DSC 2003, Vienna.
"""

import os
import re
import shutil
import signal
import subprocess
import tempfile

import numpy as np
import pandas as pd

from bsam import config as bsam_config
from bsam.errors import SamplerError, SamplerTimeoutError
from bsam.logging_config import get_pipeline_logger
from bsam.sampler.base import PosteriorDraws, Sampler

log = get_pipeline_logger(__name__)

SCRIPT_NAME = "bsam.cmd"
DATA_NAME = "data.R"
CODA_STEM = "CODA"

# Messages JAGS prints when a script command fails.
_ERROR_PATTERN = re.compile(
    r"(RUNTIME ERROR|Compilation error|Error parsing|syntax error|"
    r"Cannot open|Can't|Unable to)",
    re.IGNORECASE,
)
_NODE_PATTERN = re.compile(r"^(?P<base>[^\[]+)(?:\[(?P<index>[0-9, ]+)\])?$")


# ── R dump format ───────────────────────────────────────────────────────


def _format_value(v):
    if isinstance(v, str):
        return f'"{v}"'
    if isinstance(v, (bool, np.bool_)):
        return "1" if v else "0"
    if isinstance(v, (int, np.integer)):
        return str(int(v))
    v = float(v)
    if np.isnan(v):
        return "NA"
    if np.isinf(v):
        return "Inf" if v > 0 else "-Inf"
    return f"{v:.17g}"


def format_rdump(values):
    """Serialize named scalars and arrays in R dump format.

    Arrays of two or more dimensions are written column-major with a
    ``.Dim`` attribute, as R stores them.
    """
    lines = []
    for name, value in values.items():
        arr = np.asarray(value)
        if arr.ndim == 0:
            body = _format_value(arr.item())
        else:
            flat = arr.ravel(order="F") if arr.ndim > 1 else arr
            items = ", ".join(_format_value(v) for v in flat.tolist())
            if arr.ndim == 1:
                body = f"c({items})"
            else:
                dims = ", ".join(str(d) for d in arr.shape)
                body = f"structure(c({items}), .Dim = c({dims}))"
        lines.append(f'"{name}" <-\n{body}')
    return "\n".join(lines) + "\n"


def write_rdump(path, values):
    with open(path, "w") as f:
        f.write(format_rdump(values))
    return path


# ── JAGS script ─────────────────────────────────────────────────────────


def build_script(model_file, monitor, run_config):
    """Return the text of a JAGS batch script.

    Adaptation and burn-in each take half of ``adapt``; monitors record
    every ``thin``-th of ``samples`` iterations.
    """
    lines = [
        f'model in "{model_file}"',
        f'data in "{DATA_NAME}"',
        f"compile, nchains({run_config.chains})",
    ]
    for chain in range(1, run_config.chains + 1):
        lines.append(f'parameters in "inits{chain}.R", chain({chain})')
    lines += [
        "initialize",
        f"adapt {run_config.n_adapt}",
        f"update {run_config.n_burnin}",
    ]
    for name in monitor:
        lines.append(f"monitor {name}, thin({run_config.thin})")
    lines += [
        f"update {run_config.samples}",
        f"coda *, stem({CODA_STEM})",
        "exit",
    ]
    return "\n".join(lines) + "\n"


# ── CODA output ─────────────────────────────────────────────────────────


def _parse_node(node):
    m = _NODE_PATTERN.match(node.strip())
    if m is None:
        raise SamplerError(f"Unrecognised node name in CODA index: {node!r}")
    index = m.group("index")
    if index is None:
        return m.group("base"), ()
    return m.group("base"), tuple(int(i) for i in index.split(","))


def read_coda(workdir, n_chains, stem=CODA_STEM):
    """Read JAGS CODA output into PosteriorDraws.

    ``{stem}index.txt`` lists ``node first last`` line ranges into each
    ``{stem}chain{k}.txt`` file of ``iteration value`` pairs.
    """
    index_path = os.path.join(workdir, f"{stem}index.txt")
    if not os.path.exists(index_path):
        raise SamplerError(f"JAGS wrote no CODA index ({index_path})")

    index = pd.read_csv(index_path, sep=r"\s+", header=None,
                        names=["node", "first", "last"])
    chains = []
    for k in range(1, n_chains + 1):
        chain_path = os.path.join(workdir, f"{stem}chain{k}.txt")
        if not os.path.exists(chain_path):
            raise SamplerError(f"JAGS wrote no CODA output for chain {k}")
        chain = pd.read_csv(chain_path, sep=r"\s+", header=None,
                            names=["iteration", "value"])
        chains.append(chain["value"].to_numpy(dtype=float))

    nodes = {}
    for row in index.itertuples(index=False):
        base, idx = _parse_node(row.node)
        nodes.setdefault(base, []).append((idx, int(row.first), int(row.last)))

    draws = {}
    for base, entries in nodes.items():
        n_draws = entries[0][2] - entries[0][1] + 1
        ndim = len(entries[0][0])
        dims = tuple(max(e[0][d] for e in entries) for d in range(ndim))
        arr = np.full((n_chains, n_draws) + dims, np.nan)
        for idx, first, last in entries:
            if last - first + 1 != n_draws:
                raise SamplerError(f"Uneven draw counts for '{base}' in CODA index")
            target = tuple(i - 1 for i in idx)
            for c, values in enumerate(chains):
                arr[(c, slice(None)) + target] = values[first - 1:last]
        draws[base] = arr

    return PosteriorDraws(draws)


# ── Sampler ─────────────────────────────────────────────────────────────


class JagsSampler(Sampler):
    """Run JAGS through its command-line interface.

    Parameters
    ----------
    executable : str, optional
        JAGS binary. Default: config.JAGS_EXECUTABLE (env BSAM_JAGS).
    model_dir : str, optional
        Directory holding ``{model}.txt`` model descriptions.
    keep_workdir : bool
        Leave the working directory in place for inspection.
    """

    name = "jags"

    def __init__(self, executable=None, model_dir=None, keep_workdir=False):
        self.executable = executable or bsam_config.JAGS_EXECUTABLE
        self.model_dir = model_dir or bsam_config.JAGS_MODEL_DIR
        self.keep_workdir = keep_workdir

    def model_file(self, model):
        return os.path.join(self.model_dir, f"{model.value}.txt")

    def write_inputs(self, workdir, model, bundle, config):
        """Write data, per-chain inits and the script into ``workdir``."""
        model_file = self.model_file(model)
        if not os.path.exists(model_file):
            raise SamplerError(f"Model description not found: {model_file}")

        write_rdump(os.path.join(workdir, DATA_NAME), bundle.data)
        for chain in range(1, config.chains + 1):
            inits = dict(bundle.inits)
            inits[".RNG.name"] = bsam_config.JAGS_RNG_NAME
            inits[".RNG.seed"] = int(config.seed) + chain
            write_rdump(os.path.join(workdir, f"inits{chain}.R"), inits)

        script_path = os.path.join(workdir, SCRIPT_NAME)
        with open(script_path, "w") as f:
            f.write(build_script(os.path.abspath(model_file), bundle.monitor, config))
        return script_path

    def _execute(self, workdir, timeout):
        try:
            proc = subprocess.Popen(
                [self.executable, SCRIPT_NAME],
                cwd=workdir,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                start_new_session=True,
            )
        except OSError as exc:
            raise SamplerError(f"Could not start JAGS ({self.executable}): {exc}") from exc

        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            # JAGS launchers may fork; take down the whole process group.
            _kill_group(proc)
            stdout, stderr = proc.communicate()
            raise SamplerTimeoutError(
                f"JAGS exceeded the {timeout}s timeout and was terminated",
                output=_as_text(stdout) + _as_text(stderr),
            ) from exc
        except BaseException:
            _kill_group(proc)
            proc.wait()
            raise

        output = (stdout or "") + (stderr or "")
        if proc.returncode != 0 or _ERROR_PATTERN.search(output):
            raise SamplerError(
                f"JAGS failed with exit status {proc.returncode}", output=output,
            )
        return output

    def run(self, model, bundle, config):
        if self.keep_workdir:
            workdir = tempfile.mkdtemp(prefix="bsam_jags_")
            log.info("Keeping JAGS working directory: %s", workdir)
            return self._run_in(workdir, model, bundle, config)

        workdir = tempfile.mkdtemp(prefix="bsam_jags_")
        try:
            return self._run_in(workdir, model, bundle, config)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

    def _run_in(self, workdir, model, bundle, config):
        self.write_inputs(workdir, model, bundle, config)
        log.debug("Running JAGS %s in %s (N=%d)", model.value, workdir, bundle.n_rows)
        self._execute(workdir, config.timeout)
        draws = read_coda(workdir, config.chains)
        missing = [m for m in bundle.monitor if m not in draws]
        if missing:
            raise SamplerError(f"JAGS output lacks monitored quantities {missing}")
        return draws


def _as_text(value):
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _kill_group(proc):
    """SIGKILL the process group led by ``proc`` (started in its own session)."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass

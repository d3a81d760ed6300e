# ofborg

Building blocks for a bot that watches pull requests, decides what to
build, checks code out with git and reports the results.

It needs Python 3.10 or later on a POSIX system (file locks use `fcntl`)
and has no third-party dependencies. Git must be on the `PATH` for the
checkout features.

## Modules

- `ofborg.commentparser`: reads `@ofborg` / `@grahamcofborg` commands
  (`build`, `test`, `eval`) out of a pull-request comment.
- `ofborg.acl`: decides which repositories are eligible and which users
  may build without restrictions.
- `ofborg.locks`, `ofborg.clone` and `ofborg.checkout`: cached,
  lock-protected git clones with per-job working copies.
- `ofborg.asynccmd`: runs a command and yields its stdout and stderr lines
  as they arrive.
- `ofborg.config`: loads and validates the JSON configuration file.
- `ofborg.easyamqp`: plain descriptions of exchanges, queues, bindings
  and consumers.
- `ofborg.message` and `ofborg.ghevent`: the JSON messages passed between
  workers and the GitHub webhook payloads they consume.
- `ofborg.metrics`: the metric catalogue, the `Event` type and a
  `MetricCollector` that renders Prometheus text output.
- `ofborg.maintainers`: decodes the list of maintainers affected by a
  change and groups it by package.
- `ofborg.commitstatus`: sets commit statuses through an API object you
  supply and sorts its errors into `ExpiredCredentials`, `MissingSha` and
  plain `CommitStatusError`.
- `ofborg.util`: `partition_result`, `file_to_str` and `setup_log`.

## Parsing comments

```python
from ofborg.commentparser import parse, Build, Eval

instructions = parse("""
Looks good, let's try it.

@ofborg build hello
@ofborg eval
""")

for instruction in instructions or []:
    if isinstance(instruction, Build):
        print("build", instruction.subset, instruction.attrs)
    elif isinstance(instruction, Eval):
        print("evaluate")
```

`parse` returns `None` when the text holds no instructions. `test foo`
asks for a build of `tests.foo` in the `Subset.NIXOS` subset; `build`
uses `Subset.NIXPKGS`. Unknown commands are skipped.

## Access control

```python
from ofborg.acl import Acl

acl = Acl(["nixos/nixpkgs"], ["alice", "bob"])
acl.is_repo_eligible("NixOS/nixpkgs")                 # True
acl.can_build_unrestricted("Alice", "NixOS/nixpkgs")  # True
```

Passing `None` as the trusted users lets everybody build unrestricted.

## Checkouts

```python
from ofborg.checkout import cached_cloner

cloner = cached_cloner("/var/lib/ofborg/checkout")
project = cloner.project("nixos/nixpkgs", "https://example.com/nixpkgs.git")
working_copy = project.clone_for("builder", "1234")
working_copy.checkout_origin_ref("master")
working_copy.fetch_pr(1234)
print(working_copy.files_changed_from_head("pr"))
```

Each git operation holds an exclusive lock file next to the clone.
Failed git operations raise `ofborg.clone.GitError`.

## Running commands

```python
from ofborg.asynccmd import AsyncCmd

spawned = AsyncCmd(["/bin/sh", "-c", "echo hi; echo there >&2"]).spawn()
for line in spawned.lines():
    print(line)
exit_code = spawned.wait()
```

Lines that are not valid UTF-8 are replaced by
`"Non-UTF8 data omitted from the log."`.

## Configuration

```python
from ofborg.config import load

cfg = load("config.json")
print(cfg.whoami(), cfg.rabbitmq.as_uri())
acl = cfg.acl()
```

Missing fields and values of the wrong type raise `ConfigError`.
`nix.system` may be a string or a list of strings.

## Build results

```python
from ofborg.message import BuildResult

result = BuildResult.from_json(text)
print(result.status().describe())
```

Both the tagged `V1` format and the older format are read, and
`to_json` writes each back in the shape it was read in. A legacy result
with no status falls back to its `success` flag, and to `Skipped` when
that is missing too.

## Metrics

```python
from ofborg.metrics import Event, MetricCollector

collector = MetricCollector()
collector.record("builder-1", Event("JobReceived"))
collector.record("builder-1", Event("EvaluationDuration", "master", 12))
print(collector.prometheus_output())
```

`ofborg.metrics.events()` lists every known metric. Events serialise to
and from JSON with `Event.to_json` and `Event.from_json`.

## Logging

`ofborg.util.setup_log()` configures the root logger. The level comes
from `OFBORG_LOG` (default `info`); setting `OFBORG_LOG_JSON=1` writes one
JSON object per line.

## What it does not do

This package is a library. It has no commands to run and no long-running
workers: it does not connect to a message broker (`ofborg.easyamqp` only
describes exchanges, queues and consumers), does not serve the Prometheus
output over HTTP, does not talk to GitHub by itself (`CommitStatus` calls
an API object you provide), and does not run Nix evaluations or builds.
`ImpactedMaintainers` decodes an already computed maintainer list rather
than computing one.
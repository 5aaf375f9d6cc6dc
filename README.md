# clustermeta

This package provides metadata for network observability on Kubernetes nodes. It is pure Python and has no runtime dependencies. It has two parts.

## `clustermeta.conntrack`

This part keeps a user-space record of the NAT translations reported by the kernel's connection-tracking table.

- `netlink` has the alignment helpers (`nlmsg_align`, `nla_align`) and `check_message`, which raises `NetlinkError` for error messages. It also has `marshal_attributes` and `AttributeScanner`. The scanner walks netlink attributes, and `with scanner.nested():` enters a nested attribute.
- `codec` uses `Decoder.decode_and_release_event` to turn an `Event` made of `NetlinkMessage`s into `Con` entries. `encode_conn` encodes a `Con` back into attributes.
- `tracker` has `RealConntracker`, which keeps NAT entries in a `ConntrackCache`. That cache is an LRU cache holding both directions of each connection.
  - `register()` records a live entry as an "orphan" until it is looked up.
  - `load_initial_state()` loads entries from a table dump without marking them as orphans.
  - `compact()` drops orphans that have expired.
  - `get_translation_for_conn()` returns an `IPTranslation` or `None`.
  - `get_stats()` reports counters.
  - `is_nat()` tells NAT entries apart from ordinary ones.
- `circuit_breaker` has `CircuitBreaker`, which tracks an event rate as an exponentially weighted moving average. It opens when that rate goes above the limit and stays open until `reset()` is called. By default a daemon thread calls `update()` every 3 seconds. `stop()` ends that thread, and so does using the breaker as a context manager.
- `bpf_sampler` has `generate_bpf_sampler(rate)`, which returns the classic BPF instructions of a random sampling filter. It raises `ValueError` if the rate is outside 0 to 1.
- `service` has `new_conntracker(config, backend_factory)`, which creates the process-wide tracker once and returns that same tracker on every later call.
  - If `config` is `None` or disabled, the tracker is a `NoopConntracker`.
  - Otherwise `backend_factory(config)` must return a backend within `config.conntrack_init_timeout` seconds. The backend is wrapped in a `NetlinkConntracker`.
  - If the factory fails, times out or is missing, `ConntrackerError` is raised on this call and on every later call. Its `fallback` attribute holds a `NoopConntracker`.
- `self_metrics` has `SelfMetrics(tracker).collect()`, which turns one snapshot of the tracker statistics into a list of `Observation`s. Names follow the pattern `kindling_telemetry_conntracker_*`, and missing statistics are observed as 0.
- `config` has `Config`, which holds the defaults: a rate limit of 500, a maximum state size of 130000 and an init timeout of 30 s.
- `iputil` converts between IPv4 addresses and their little-endian uint32 form.
- `address` and `model` have the key and value types used by the tracker.

```python
from clustermeta.conntrack.service import NoopConntracker
from clustermeta.conntrack.iputil import string_to_uint32

tracker = NoopConntracker(None)
tracker.get_dnat_tuple_with_string("10.0.0.1", "10.96.0.10", 40000, 53, 1)  # -> None
string_to_uint32("1.2.3.4")  # -> 67305985
```

## `clustermeta.kube`

This part is an in-memory cache of Kubernetes metadata.

- `cache` has `K8sMetaDataCache`, which maps container ids and pod or service `ip:port` pairs to `K8sContainerInfo`, `K8sPodInfo` and `K8sServiceInfo`.
- `watcher` has `MetadataWatcher`, which applies pod, service, ReplicaSet and node events to the cache and to the side tables (`PodMap`, `ServiceMap`, `ReplicaSetMap`, `NodeMap`). Events are given as the dataclasses in `objects`.
  - Pods that have been deleted stay in the cache until `grace_delete_period` seconds have passed (60 by default).
  - `flush_expired_pods()` removes them, and so does `run_pod_delete_loop(interval, stop_event)`.
  - Deleting a service empties its `K8sServiceInfo` in place, so every pod that refers to it sees the service emptied.
- `scheme` has `complete_gvk(api_version, kind)`, which returns the kind on its own for built-in API groups and `"<apiVersion>/<kind>"` for any other group.
- `config` has `build_config(*options)` together with the `with_auth_type`, `with_kube_config_dir` and `with_grace_delete_period` options, plus `APIConfig.validate()`.
- `pods` has `truncate_container_id`.

```python
from clustermeta.kube.pods import truncate_container_id
from clustermeta.kube.scheme import complete_gvk

truncate_container_id("docker://a1b2c3d4e5f6g7h8")  # -> "a1b2c3d4e5f6"
complete_gvk("apps.kruise.io/v1beta1", "StatefulSet")  # -> "apps.kruise.io/v1beta1/StatefulSet"
```

## What the package does not do

- It opens no netlink socket and does not read or dump the kernel conntrack table. You feed `Event`s or `Con`s to `RealConntracker` yourself, or pass a `backend_factory` to `new_conntracker`.
- `generate_bpf_sampler` builds the filter but does not attach it to a socket.
- It does not connect to a Kubernetes API server or watch it. `clustermeta.kube.config` only holds settings, and the events for `MetadataWatcher` must come from your own client.
- It exports no metrics. `SelfMetrics.collect()` only returns the observations.
- It has no command-line program.

## Tests

```
pip install -e .[test]
pytest
```
# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Adds dependencies on the sanitizer runtime libraries."""

import logging

from sanitizer_variants import module_graph
from sanitizer_variants import sanitizer_flags
from sanitizer_variants import toolchain


def _propagate_to(module, graph):
  s = module.sanitize
  visited = set()

  def visit(edge, parent):
    if not edge.is_sanitizable():
      return False
    dep = edge.target
    if not dep.is_static():
      return False
    # The flags only ever get set, so a second visit learns nothing.
    if id(dep) in visited:
      return False
    visited.add(id(dep))

    if dep.sanitize is not None:
      if sanitizer_flags.enable_minimal_runtime(dep.sanitize):
        s.minimal_runtime_dep = True
      elif sanitizer_flags.enable_ubsan_runtime(dep.sanitize):
        s.ubsan_runtime_dep = True

      # Nothing more can be learned from deeper dependencies.
      if s.minimal_runtime_dep and s.ubsan_runtime_dep:
        return False

      if module.os == toolchain.LINUX_GLIBC:
        s.builtins_dep = True
      return True

    if dep.role == module_graph.ROLE_SNAPSHOT:
      if dep.sanitize_minimal_dep:
        s.minimal_runtime_dep = True
      if dep.sanitize_ubsan_dep:
        s.ubsan_runtime_dep = True
    return False

  graph.walk_deps(module, visit)


def propagate_runtime_deps(graph):
  """Marks modules whose static dependencies need a UBSan runtime."""
  for module in graph.modules():
    if module.sanitize is not None:
      _propagate_to(module, graph)


def get_runtime_library(module, diag_sanitizers):
  """Returns (runtime library, extra static deps) for |module|.

  The library is None when no runtime is needed.
  """
  s = module.sanitize
  tc = module.toolchain
  if s.address is True:
    return toolchain.get_address_sanitizer_runtime_library(tc), []
  if s.hwaddress is True:
    if module.is_static_binary():
      return toolchain.get_hwaddress_sanitizer_static_library(tc), ['libdl']
    return toolchain.get_hwaddress_sanitizer_runtime_library(tc), []
  if s.thread is True:
    return toolchain.get_thread_sanitizer_runtime_library(tc), []
  if s.scudo is True:
    if not diag_sanitizers and not s.ubsan_runtime_dep:
      return toolchain.get_scudo_minimal_runtime_library(tc), []
    return toolchain.get_scudo_runtime_library(tc), []
  if (diag_sanitizers or s.ubsan_runtime_dep or s.fuzzer is True or
      s.undefined is True or s.all_undefined is True):
    library = toolchain.get_undefined_behavior_sanitizer_runtime_library(tc)
    if module.is_static_binary():
      library += '.static'
    return library, []
  return None, []


def _add_dep(module, name, kind):
  dep = module_graph.RuntimeDependency(name, kind)
  if dep not in module.runtime_deps:
    module.runtime_deps.append(dep)


def add_runtime_deps(module, session):
  """Adds the runtime library dependencies of |module|.

  compute_sanitizer_lists() must have been called for |module|. Static
  libraries get no main runtime dependency; it is added to the binaries and
  shared libraries linking them instead.
  """
  s = module.sanitize
  if s is None or not module.enabled:
    return
  snapshots = session.snapshots
  tc = module.toolchain

  diag_sanitizers = s.diag_sanitizers
  # Hosts assume the runtime library is always used.
  if module.is_host():
    diag_sanitizers = s.sanitizers
  library, extra_static_deps = get_runtime_library(module, diag_sanitizers)

  if sanitizer_flags.enable_minimal_runtime(s) or s.minimal_runtime_dep:
    _add_dep(module, snapshots.get_static(
        toolchain.get_undefined_behavior_sanitizer_minimal_runtime_library(
            tc)), module_graph.STATIC_DEP)
  if s.builtins_dep:
    _add_dep(module,
             snapshots.get_static(toolchain.get_builtins_runtime_library(tc)),
             module_graph.STATIC_DEP)

  if library is None:
    return
  # UBSan also works on non-bionic linux hosts.
  if not (tc.bionic() or tc.musl() or s.ubsan_runtime_dep):
    return
  if module.is_static_binary():
    for name in [library] + extra_static_deps:
      _add_dep(module, snapshots.get_static(name), module_graph.STATIC_DEP)
  elif not module.is_static() and not module.is_header():
    _add_dep(module, snapshots.get_shared(library), module_graph.SHARED_DEP)
  logging.debug('%s: runtime deps %s', module.variant_name(),
                module.runtime_deps)

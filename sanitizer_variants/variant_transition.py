# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Splits the module graph into base and sanitized variations.

Each splitting sanitizer is handled by its own SanitizerSplitMutator, in the
order of sanitizer_types.get_variation_sanitizers(). One run:
 1) Marks apex aggregates that contain a sanitized module.
 2) Decides the variations every module splits into.
 3) Resolves each dependency edge, consumers first. The final variations of
    a module are the ones it split into plus every variation an edge
    resolved to.
 4) Materializes one Module per variation and rewires the edges.
 5) Mutates the sanitize properties of every new variation.

Every decision is dispatched on the module role. The tables at the bottom of
this file are checked to cover all roles when the module is imported.
"""

import logging

from sanitizer_variants import module_graph
from sanitizer_variants import sanitizer_types
from sanitizer_variants import toolchain
from sanitizer_variants.util import concurrent_util

BASE_VARIATION = ''

# Runtime libraries a sanitized apex aggregate must ship.
_APEX_RUNTIME_LIBRARIES = {
    sanitizer_types.ASAN: toolchain.get_address_sanitizer_runtime_library,
    sanitizer_types.HWASAN: toolchain.get_hwaddress_sanitizer_runtime_library,
    sanitizer_types.TSAN: toolchain.get_thread_sanitizer_runtime_library,
}


def _needs_vendor_snapshot_variants(module, sanitizer):
  """True for static libraries the vendor snapshot captures in both forms."""
  return (sanitizer.captured_in_vendor_snapshot and module.is_static() and
          module.in_vendor() and not module.vendor_proprietary and
          not module.prebuilt and not module.sanitize_never() and
          module.sanitizer_supported(sanitizer) and
          not module.is_sanitizer_explicitly_disabled(sanitizer))


class SanitizerSplitMutator(object):
  def __init__(self, sanitizer, session):
    if not sanitizer_types.check_sanitizer(sanitizer).creates_variation:
      raise sanitizer_types.SanitizerConsistencyError(
          '%s does not create variations' % sanitizer.variation_name)
    self._sanitizer = sanitizer
    self._variation = sanitizer.variation_name
    self._session = session

  def _ordered(self, variations):
    return [v for v in (BASE_VARIATION, self._variation) if v in variations]

  def mark_sanitizable_apexes(self, graph):
    """Enables the sanitizer on apexes that request it or contain it."""
    for module in graph.modules():
      if module.role != module_graph.ROLE_APEX:
        continue
      enabled = module.is_apex_sanitizer_enabled(self._sanitizer)
      if (module.is_device() and
          self._sanitizer.name in self._session.policy.sanitize_device()):
        enabled = True
      for edge in module.deps:
        if edge.target.is_sanitizer_enabled(self._sanitizer):
          enabled = True
      if enabled:
        module.enable_apex_sanitizer(self._sanitizer)

  # Split.
  def split(self, module):
    """Returns the variations |module| is built in on its own account."""
    return _SPLIT[module.role](self, module)

  def _split_platform_native(self, module):
    if not module.sanitize_prop_defined():
      return [BASE_VARIATION]
    if _needs_vendor_snapshot_variants(module, self._sanitizer):
      return [BASE_VARIATION, self._variation]
    if not module.is_sanitizer_enabled(self._sanitizer):
      return [BASE_VARIATION]
    if module.is_binary():
      # A binary is never built without a sanitizer it asked for.
      return [self._variation]
    if module.is_statically_linked() or module.is_header():
      return [BASE_VARIATION, self._variation]
    return [self._variation]

  def _split_apex(self, module):
    if module.is_apex_sanitizer_enabled(self._sanitizer):
      return [self._variation]
    return [BASE_VARIATION]

  def _split_snapshot(self, module):
    if module.is_snapshot_sanitizer_enabled(self._sanitizer):
      return [BASE_VARIATION, self._variation]
    return [BASE_VARIATION]

  def _split_base(self, module):
    return [BASE_VARIATION]

  # Outgoing transition.
  def outgoing_transition(self, module, edge, source_variation):
    """Returns the variation |module| asks of edge.target."""
    if not edge.is_sanitizable():
      return BASE_VARIATION
    return _OUTGOING[module.role](self, module, source_variation)

  def _outgoing_pass_through(self, module, source_variation):
    return source_variation

  def _outgoing_base(self, module, source_variation):
    return BASE_VARIATION

  # Incoming transition.
  def incoming_transition(self, module, incoming_variation):
    """Returns the variation of |module| an incoming request resolves to."""
    return _INCOMING[module.role](self, module, incoming_variation)

  def _incoming_platform_native(self, module, incoming_variation):
    sanitizer = self._sanitizer
    if (not module.sanitize_prop_defined() or module.sanitize_never() or
        module.is_sanitizer_explicitly_disabled(sanitizer) or
        not module.sanitizer_supported(sanitizer)):
      return BASE_VARIATION
    enabled = module.is_sanitizer_enabled(sanitizer)

    if module.is_binary():
      return self._variation if enabled else BASE_VARIATION

    if not module.is_statically_linked() and not module.is_header():
      if enabled:
        return self._variation
      if not sanitizer.propagates_through_shared:
        return BASE_VARIATION

    # Static and header libraries are built the way their consumer is.
    return incoming_variation

  def _incoming_apex(self, module, incoming_variation):
    if module.is_apex_sanitizer_enabled(self._sanitizer):
      return self._variation
    return incoming_variation

  def _incoming_snapshot(self, module, incoming_variation):
    if module.is_snapshot_sanitizer_enabled(self._sanitizer):
      return incoming_variation
    return BASE_VARIATION

  def _incoming_base(self, module, incoming_variation):
    return BASE_VARIATION

  # Mutation.
  def mutate(self, module, variation):
    """Applies the decision for |variation| to the properties of |module|."""
    _MUTATE[module.role](self, module, variation == self._variation)
    return module

  def _mutate_platform_native(self, module, sanitized):
    if not module.sanitize_prop_defined():
      return
    sanitizer = self._sanitizer
    enabled = module.is_sanitizer_enabled(sanitizer)

    # Decide whether make sees only one of the two variations.
    if module.is_statically_linked() or module.is_header():
      one_make_variation = not sanitizer.exports_both_static_variations
    elif not module.is_binary():
      one_make_variation = sanitizer.propagates_through_shared
    else:
      one_make_variation = False
    if one_make_variation and enabled != sanitized:
      logging.debug('%s: hiding %s variation from make',
                    module.variant_name(), self._variation)
      module.prevent_install = True
      module.hide_from_make = True

    if not sanitized:
      if enabled:
        module.sanitize.disable_sanitizer(sanitizer)
      return

    module.sanitize.set_sanitizer(sanitizer, True)
    if (sanitizer.incompatible_with_cfi and module.is_device() and
        module.sanitizer_supported(sanitizer_types.CFI)):
      module.sanitize.set_sanitizer(sanitizer_types.CFI, False)

    # ASan shared libraries are installed under /data/asan.
    if (sanitizer is sanitizer_types.ASAN and module.is_shared() and
        module.is_device() and enabled):
      module.sanitize.in_sanitizer_dir = True

    if module.is_statically_linked() and module.exported_to_make:
      self._session.get_static_libs(sanitizer).add(module, module.name)

  def _mutate_apex(self, module, sanitized):
    if not sanitized:
      return
    get_library = _APEX_RUNTIME_LIBRARIES.get(self._sanitizer)
    if get_library is None:
      return
    name = self._session.snapshots.get_shared(get_library(module.toolchain))
    dep = module_graph.RuntimeDependency(name, module_graph.SHARED_DEP)
    if dep not in module.runtime_deps:
      module.runtime_deps.append(dep)

  def _mutate_snapshot(self, module, sanitized):
    if not module.is_snapshot_sanitizer_enabled(self._sanitizer):
      return
    module.snapshot_variation[self._variation] = (
        self._variation if sanitized else BASE_VARIATION)
    # make knows snapshot prebuilts by their base module name.
    if (sanitized and self._sanitizer is sanitizer_types.CFI and
        module.is_static() and module.exported_to_make):
      self._session.get_static_libs(self._sanitizer).add(
          module, module.base_name)

  def _mutate_none(self, module, sanitized):
    pass

  def run(self, graph, maximum_jobs=0):
    """Replaces every module of |graph| by its variations."""
    logging.info('Splitting %d modules for %s',
                 len(graph.modules()), self._variation)
    self.mark_sanitizable_apexes(graph)

    modules = graph.consumers_first()
    in_graph = set(id(m) for m in graph.modules())
    variations = {}
    for module in modules:
      if id(module) not in in_graph:
        raise module_graph.GraphError(
            '%s is a dependency but not part of the graph' %
            module.variant_name())
      variations[id(module)] = set(self.split(module))

    # (id(consumer), consumer variation, edge index) -> target variation.
    resolved = {}
    for module in modules:
      for variation in self._ordered(variations[id(module)]):
        for index, edge in enumerate(module.deps):
          requested = self.outgoing_transition(module, edge, variation)
          target_variation = self.incoming_transition(edge.target, requested)
          resolved[(id(module), variation, index)] = target_variation
          variations[id(edge.target)].add(target_variation)

    clones = {}
    tasks = []
    for module in graph.modules():
      for variation in self._ordered(variations[id(module)]):
        clone = module.clone_for_variation(self._sanitizer, variation)
        clones[(id(module), variation)] = clone
        tasks.append((clone, variation))
      logging.debug('%s: %s variations %s', module.variant_name(),
                    self._variation, self._ordered(variations[id(module)]))

    for module in graph.modules():
      for variation in self._ordered(variations[id(module)]):
        clones[(id(module), variation)].deps = [
            module_graph.DependencyEdge(
                edge.kind,
                clones[(id(edge.target), resolved[(id(module), variation,
                                                   index)])])
            for index, edge in enumerate(module.deps)]

    concurrent_util.run_in_order(self.mutate, tasks, maximum_jobs)
    graph.replace_modules([clone for clone, _ in tasks])


def split_graph(graph, session, maximum_jobs=0):
  """Runs every splitting sanitizer over |graph| in processing order.

  Later sanitizers observe the mutations of the earlier ones, e.g. cfi sees
  that an asan variation already cleared it.
  """
  for sanitizer in sanitizer_types.get_variation_sanitizers():
    SanitizerSplitMutator(sanitizer, session).run(graph, maximum_jobs)


_SPLIT = module_graph.check_role_table({
    module_graph.ROLE_PLATFORM_NATIVE:
        SanitizerSplitMutator._split_platform_native,
    module_graph.ROLE_APEX: SanitizerSplitMutator._split_apex,
    module_graph.ROLE_JNI: SanitizerSplitMutator._split_base,
    module_graph.ROLE_SNAPSHOT: SanitizerSplitMutator._split_snapshot,
    module_graph.ROLE_OTHER: SanitizerSplitMutator._split_base,
}, 'split')

_OUTGOING = module_graph.check_role_table({
    module_graph.ROLE_PLATFORM_NATIVE:
        SanitizerSplitMutator._outgoing_pass_through,
    module_graph.ROLE_APEX: SanitizerSplitMutator._outgoing_pass_through,
    module_graph.ROLE_JNI: SanitizerSplitMutator._outgoing_base,
    module_graph.ROLE_SNAPSHOT: SanitizerSplitMutator._outgoing_pass_through,
    module_graph.ROLE_OTHER: SanitizerSplitMutator._outgoing_pass_through,
}, 'outgoing transition')

_INCOMING = module_graph.check_role_table({
    module_graph.ROLE_PLATFORM_NATIVE:
        SanitizerSplitMutator._incoming_platform_native,
    module_graph.ROLE_APEX: SanitizerSplitMutator._incoming_apex,
    module_graph.ROLE_JNI: SanitizerSplitMutator._incoming_base,
    module_graph.ROLE_SNAPSHOT: SanitizerSplitMutator._incoming_snapshot,
    module_graph.ROLE_OTHER: SanitizerSplitMutator._incoming_base,
}, 'incoming transition')

_MUTATE = module_graph.check_role_table({
    module_graph.ROLE_PLATFORM_NATIVE:
        SanitizerSplitMutator._mutate_platform_native,
    module_graph.ROLE_APEX: SanitizerSplitMutator._mutate_apex,
    module_graph.ROLE_JNI: SanitizerSplitMutator._mutate_none,
    module_graph.ROLE_SNAPSHOT: SanitizerSplitMutator._mutate_snapshot,
    module_graph.ROLE_OTHER: SanitizerSplitMutator._mutate_none,
}, 'mutate')

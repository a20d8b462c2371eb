# Copyright 2015 The Chromium Authors. All rights reserved.
# Use of this source code is governed by a BSD-style license that can be
# found in the LICENSE file.

"""Toolchain capabilities and sanitizer runtime library names."""

ANDROID = 'android'
LINUX_GLIBC = 'linux_glibc'
LINUX_MUSL = 'linux_musl'
LINUX_BIONIC = 'linux_bionic'
DARWIN = 'darwin'
WINDOWS = 'windows'
ALLOWED_OSES = [ANDROID, LINUX_GLIBC, LINUX_MUSL, LINUX_BIONIC, DARWIN,
                WINDOWS]

ARM = 'arm'
ARM64 = 'arm64'
X86 = 'x86'
X86_64 = 'x86_64'
RISCV64 = 'riscv64'

# Arch -> (bitsize, arch name used in libclang_rt library names).
_ARCH_INFO = {
    ARM: (32, 'arm'),
    ARM64: (64, 'aarch64'),
    X86: (32, 'i686'),
    X86_64: (64, 'x86_64'),
    RISCV64: (64, 'riscv64'),
}

# Used in get_toolchain().
_TOOLCHAIN_CACHE = {}


class ToolchainError(Exception):
  pass


class Toolchain(object):
  def __init__(self, os, arch):
    if os not in ALLOWED_OSES:
      raise ToolchainError('Unknown os: %s' % os)
    if arch not in _ARCH_INFO:
      raise ToolchainError('Unknown arch: %s' % arch)
    self.os = os
    self.arch = arch

  def bionic(self):
    return self.os in (ANDROID, LINUX_BIONIC)

  def musl(self):
    return self.os == LINUX_MUSL

  def glibc(self):
    return self.os == LINUX_GLIBC

  def is_linux(self):
    return self.os in (ANDROID, LINUX_GLIBC, LINUX_MUSL, LINUX_BIONIC)

  def is_windows(self):
    return self.os == WINDOWS

  def get_bitsize(self):
    return _ARCH_INFO[self.arch][0]

  def is_64bit(self):
    return self.get_bitsize() == 64

  def get_libclang_runtime_library_arch(self):
    return _ARCH_INFO[self.arch][1]

  def __repr__(self):
    return 'Toolchain(%s, %s)' % (self.os, self.arch)


def get_toolchain(os, arch):
  key = (os, arch)
  if key not in _TOOLCHAIN_CACHE:
    _TOOLCHAIN_CACHE[key] = Toolchain(os, arch)
  return _TOOLCHAIN_CACHE[key]


def get_libclang_runtime_library(toolchain, library):
  arch = toolchain.get_libclang_runtime_library_arch()
  if not toolchain.bionic():
    return 'libclang_rt.%s-%s' % (library, arch)
  return 'libclang_rt.%s-%s-android' % (library, arch)


def get_builtins_runtime_library(toolchain):
  return get_libclang_runtime_library(toolchain, 'builtins')


def get_address_sanitizer_runtime_library(toolchain):
  return get_libclang_runtime_library(toolchain, 'asan')


def get_hwaddress_sanitizer_runtime_library(toolchain):
  return get_libclang_runtime_library(toolchain, 'hwasan')


def get_hwaddress_sanitizer_static_library(toolchain):
  return get_libclang_runtime_library(toolchain, 'hwasan_static')


def get_undefined_behavior_sanitizer_runtime_library(toolchain):
  return get_libclang_runtime_library(toolchain, 'ubsan_standalone')


def get_undefined_behavior_sanitizer_minimal_runtime_library(toolchain):
  return get_libclang_runtime_library(toolchain, 'ubsan_minimal')


def get_thread_sanitizer_runtime_library(toolchain):
  return get_libclang_runtime_library(toolchain, 'tsan')


def get_scudo_runtime_library(toolchain):
  return get_libclang_runtime_library(toolchain, 'scudo')


def get_scudo_minimal_runtime_library(toolchain):
  return get_libclang_runtime_library(toolchain, 'scudo_minimal')

"""CI build-and-test orchestration for CMake/ctest projects."""

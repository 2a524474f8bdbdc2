"""cargo-pod: build a Rust static library into an xcframework and podspec for CocoaPods."""

__version__ = "0.5.0"

"""LC-3 VM Interactive Demo.

A Gradio web interface for running LC-3 program images and inspecting
the machine afterwards.

Usage:
    cd /path/to/lc3-vm
    python demo/gradio_app.py

Features:
    - Paste an image as hex words (origin first) or pick an example
    - Supply keyboard input up front
    - See console output, final registers and condition flags
    - Disassembled execution trace
"""

import sys
from pathlib import Path
from typing import List

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
from lc3vm import LC3CPU, BufferedConsole, LC3Error


TRACE_LIMIT = 100


def _text_words(text: str) -> List[int]:
    return [ord(c) for c in text] + [0]


def _format_words(words: List[int]) -> str:
    lines = []
    for i in range(0, len(words), 8):
        lines.append(" ".join(f"x{word:04X}" for word in words[i:i + 8]))
    return "\n".join(lines)


# =============================================================================
# Example Programs
# =============================================================================

EXAMPLE_IMAGES = {
    "Hello World": _format_words(
        [0x3000,
         0xE002,    # LEA R0, #2
         0xF022,    # PUTS
         0xF025]    # HALT
        + _text_words("Hello, LC-3!\n")
    ),

    "Countdown": _format_words([
        0x3000,
        0x5260,     # AND R1, R1, #0
        0x1269,     # ADD R1, R1, #9
        0x2405,     # LD  R2, ASCII0
        0x1042,     # loop: ADD R0, R1, R2
        0xF021,     # OUT
        0x127F,     # ADD R1, R1, #-1
        0x07FC,     # BRzp loop
        0xF025,     # HALT
        0x0030,     # ASCII0
    ]),

    "Echo Line": _format_words([
        0x3000,
        0xF020,     # loop: GETC
        0xF021,     # OUT
        0x1236,     # ADD R1, R0, #-10
        0x0BFC,     # BRnp loop
        0xF025,     # HALT
    ]),

    "Custom": "",
}


def parse_image_text(text: str) -> bytes:
    """Hex words separated by whitespace or commas -> image bytes.

    Accepts `x3000`, `0x3000` and bare `3000`; `;` starts a comment.
    """
    words = []
    for line in text.splitlines():
        line = line.split(";", 1)[0]
        for token in line.replace(",", " ").split():
            token = token.lower()
            if token.startswith("0x"):
                token = token[2:]
            elif token.startswith("x"):
                token = token[1:]
            value = int(token, 16)
            if not 0 <= value <= 0xFFFF:
                raise ValueError(f"word out of range: {token}")
            words.append(value)
    return b"".join(word.to_bytes(2, "big") for word in words)


# =============================================================================
# Execution Functions
# =============================================================================

def run_program(image_text: str, keyboard: str, max_cycles: int, newline: bool) -> tuple:
    """Execute an image and return results.

    Args:
        image_text: Hex words, origin first
        keyboard: Keystrokes made available to the program
        max_cycles: Maximum instructions to execute
        newline: Append a newline to the keyboard input

    Returns:
        Tuple of (console_text, summary_text, registers_text, trace_text)
    """
    if not image_text.strip():
        return "", "Error: No image provided", "", ""

    try:
        data = parse_image_text(image_text)
    except ValueError as e:
        return "", f"Error: {e}", "", ""

    console = BufferedConsole(keyboard + ("\n" if newline else ""))
    cpu = LC3CPU(console=console, max_cycles=int(max_cycles), trace=True)

    try:
        origin, count = cpu.load_image_bytes(data)
    except LC3Error as e:
        return "", f"Error: {e}", "", ""

    error_msg = None
    try:
        cpu.run()
    except LC3Error as e:
        error_msg = str(e)

    summary = cpu.get_summary()
    summary_lines = [
        "EXECUTION SUMMARY",
        "=" * 40,
        f"Loaded: {count} words at x{origin:04X}",
        f"Cycles: {summary['cycles']}",
        f"Halted: {'Yes' if summary['halted'] else 'No'}",
        f"PC:     x{summary['pc']:04X}",
    ]
    if error_msg:
        summary_lines.append(f"\nStopped: {error_msg}")
    summary_text = "\n".join(summary_lines)

    trace = cpu.get_trace()
    trace_lines = ["EXECUTION TRACE", "=" * 60]
    if len(trace) > TRACE_LIMIT:
        trace_lines.append(f"... ({len(trace) - TRACE_LIMIT} earlier entries)")
    for entry in trace[-TRACE_LIMIT:]:
        trace_lines.append(
            f"[{entry.cycle:>6}] x{entry.address:04X}  x{entry.instruction:04X}  {entry.text}"
        )
        changes = [
            f"R{i}: x{before:04X} -> x{after:04X}"
            for i, (before, after) in enumerate(
                zip(entry.pre_state["registers"], entry.post_state["registers"]))
            if before != after
        ]
        if changes:
            trace_lines.append(f"          {', '.join(changes)}")
    trace_text = "\n".join(trace_lines)

    reg_lines = ["FINAL REGISTERS", "=" * 30]
    for name, value in summary["registers"].items():
        signed = value - 0x10000 if value & 0x8000 else value
        marker = " *" if value != 0 else ""
        reg_lines.append(f"  {name}: x{value:04X} {signed:>7}{marker}")
    reg_lines.append("")
    reg_lines.append("FLAGS")
    reg_lines.append("-" * 30)
    for flag, value in summary["flags"].items():
        reg_lines.append(f"  {flag}: {value}")
    registers_text = "\n".join(reg_lines)

    return console.output_text, summary_text, registers_text, trace_text


def load_example(example_name: str) -> str:
    """Load an example image."""
    return EXAMPLE_IMAGES.get(example_name, "")


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="LC-3 VM Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # LC-3 Virtual Machine

        Runs LC-3 program images: a big-endian origin word followed by the
        program words. Execution starts at x3000.

        **Pipeline**: `fetch -> decode -> key -> registry -> execute`
        """)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Program Image")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_IMAGES.keys()),
                    value="Hello World",
                    label="Load Example"
                )

                image_input = gr.Textbox(
                    value=EXAMPLE_IMAGES["Hello World"],
                    label="Hex Words (origin first)",
                    lines=12,
                    placeholder="x3000 xF025"
                )

                gr.Markdown("### Settings")

                keyboard_input = gr.Textbox(
                    value="",
                    label="Keyboard Input",
                    placeholder="Characters delivered to GETC/IN and the keyboard registers"
                )

                with gr.Row():
                    newline_box = gr.Checkbox(value=True, label="Append newline")
                    max_cycles = gr.Slider(
                        minimum=100,
                        maximum=1000000,
                        value=100000,
                        step=100,
                        label="Max Cycles"
                    )

                run_button = gr.Button("Run Program", variant="primary")

            with gr.Column(scale=3):
                console_output = gr.Textbox(
                    label="Console",
                    lines=8,
                    interactive=False
                )
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=10,
                        interactive=False
                    )
                    registers_output = gr.Textbox(
                        label="Final Registers",
                        lines=10,
                        interactive=False
                    )

                trace_output = gr.Textbox(
                    label="Execution Trace",
                    lines=20,
                    interactive=False
                )

        with gr.Accordion("ISA Reference", open=False):
            gr.Markdown("""
            | Opcode | Form | Effect |
            |--------|------|--------|
            | `ADD` / `AND` | `DR, SR1, SR2` or `DR, SR1, #imm5` | arithmetic / bitwise, sets flags |
            | `NOT` | `DR, SR` | bitwise complement, sets flags |
            | `BR[n][z][p]` | `#offset9` | branch if a requested flag is set |
            | `JMP` / `RET` | `BaseR` | jump (RET = JMP R7) |
            | `JSR` / `JSRR` | `#offset11` / `BaseR` | call, R7 = return address |
            | `LD` / `LDI` / `LEA` | `DR, #offset9` | PC-relative load / indirect / address |
            | `LDR` | `DR, BaseR, #offset6` | base+offset load |
            | `ST` / `STI` / `STR` | as the loads | stores |
            | `TRAP` | `x20`-`x25` | GETC, OUT, PUTS, IN, PUTSP, HALT |

            **Registers**: R0-R7 (16-bit), PC, COND (exactly one of N/Z/P)
            **Keyboard**: KBSR at xFE00 (bit 15 = key ready), KBDR at xFE02
            """)

        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[image_input]
        )

        run_button.click(
            fn=run_program,
            inputs=[image_input, keyboard_input, max_cycles, newline_box],
            outputs=[console_output, summary_output, registers_output, trace_output]
        )

    return demo


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    demo = create_demo()
    demo.launch(
        share=False,
        server_name="0.0.0.0",
        server_port=7861,
        show_error=True
    )

import streamlit as st
from pathlib import Path

from shardsaw import (
    ShardsawError, describe_shard, discover_shards, format_error_chain,
    format_shard_info, join_shards, split_file,
)
from shardsaw.config import MEGABYTE, setup_logging
from shardsaw.metadata import is_complete

# Setup logging once per session
if 'logging_ready' not in st.session_state:
    setup_logging()
    st.session_state.logging_ready = True

st.title("shardsaw")
st.caption("Split files into shards for easy transport, and join them back.")

st.header("Split a File")

with st.expander("Split", expanded=True):
    source = st.text_input("File to split", placeholder="/path/to/report.bin")
    c1, c2 = st.columns(2)
    with c1:
        size_mb = st.number_input("Shard size (MB, 0 = eight shards)", min_value=0, step=1)
    with c2:
        prefix = st.text_input("Shard prefix (optional)", placeholder="loves")
    make_directory = st.checkbox("Store shards in a new directory")

    if st.button("Split File"):
        if not source:
            st.error("Please enter a file to split")
        else:
            with st.status(f"Splitting {source}...", expanded=True) as status:
                try:
                    result = split_file(
                        source,
                        max_shard_size=int(size_mb) * MEGABYTE if size_mb else None,
                        prefix=prefix or None,
                        make_directory=make_directory,
                    )
                except ShardsawError as e:
                    status.update(label="Split failed", state="error")
                    st.error(format_error_chain(e))
                else:
                    status.update(label="Complete!", state="complete")
                    st.success(f"Wrote {result.shard_count} shard(s) of {result.original_name}")
                    st.write([str(p) for p in result.shard_paths])

st.header("Join Shards")

with st.expander("Join", expanded=True):
    shard_dir = st.text_input("Directory holding shards", placeholder="/path/to/shards")
    output_dir = st.text_input("Output directory (optional)", placeholder=".")

    if shard_dir:
        try:
            shard_sets = discover_shards(shard_dir)
        except ShardsawError as e:
            st.error(format_error_chain(e))
            shard_sets = {}

        if not shard_sets:
            st.info("No shards found in this directory.")

        for key, shards in shard_sets.items():
            with st.container(border=True):
                c1, c2 = st.columns([4, 1])
                total = shards[0].header.shard_count
                with c1:
                    st.markdown(f"**📄 {key.original_name}**")
                    st.write(f"Size: {key.original_size} bytes | Shards: {len(shards)} of {total}")
                with c2:
                    ready = is_complete(shards)
                    button_key = f"join_{key.original_name}_{key.original_crc}_{key.shard_count}"
                    if st.button("Join", key=button_key, disabled=not ready, use_container_width=True):
                        with st.status(f"Joining {key.original_name}...", expanded=True) as status:
                            try:
                                result = join_shards(
                                    [s.path for s in shards],
                                    output_dir=Path(output_dir) if output_dir else None,
                                )
                            except ShardsawError as e:
                                status.update(label="Join failed", state="error")
                                st.error(format_error_chain(e))
                            else:
                                status.update(label="Complete!", state="complete")
                                st.success(f"Saved {result.output_path}")

st.header("Inspect a Shard")

shard_path = st.text_input("Shard file", placeholder="/path/to/report.bin@1.3")
if st.button("Inspect"):
    try:
        st.code(format_shard_info(describe_shard(shard_path)))
    except ShardsawError as e:
        st.error(format_error_chain(e))
